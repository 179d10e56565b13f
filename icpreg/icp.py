"""Iterative Closest Point (ICP) algorithm implementation."""

import enum
import logging
import pickle
import time

import numpy as np

from .config import IcpParameters, RegistrationConfig
from .correspondences import find_correspondences
from .error_kernels import PointToPoint, get_error_kernel
from .exceptions import (ConfigurationError, CorrespondenceStarvation,
                         NumericalSingularity, RegistrationError)
from .kdtree import KDTree
from .losses import HuberWeights, get_mestimator
from .point_cloud import PointCloud

logger = logging.getLogger(__name__)

# Smallest accepted ratio between the extreme singular values of the Hessian
MIN_RECIPROCAL_CONDITION = 1e-12


class IcpState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    ITERATING = "iterating"
    CONVERGED = "converged"
    MAX_ITERATIONS_REACHED = "max_iterations_reached"
    FAILED = "failed"

    @property
    def is_terminal(self):
        return self in (IcpState.CONVERGED, IcpState.MAX_ITERATIONS_REACHED, IcpState.FAILED)


class IcpResults:
    """
    Results of one ICP run.

    ``registration_error`` starts with the error before optimisation and
    gains one entry per iteration. Once the run terminates the results are
    frozen, also when it failed.
    """

    def __init__(self):
        self.clear()

    def clear(self):
        self._errors = []
        self._frozen = False
        self.registered_point_cloud = None
        self.transformation = np.zeros((4, 4))
        self.alignment = np.zeros((4, 4))
        self.scale = 1.0
        self.state = IcpState.UNINITIALIZED
        self.iterations = 0
        self.failure = None
        self.elapsed = 0.0

    @property
    def registration_error(self):
        return tuple(self._errors)

    @property
    def frozen(self):
        return self._frozen

    @property
    def final_error(self):
        if not self._errors:
            return None
        return self._errors[-1]

    def append_error(self, error):
        if self._frozen:
            raise RuntimeError("cannot append to results of a terminated run")
        self._errors.append(float(error))

    def freeze(self):
        self._frozen = True

    def save(self, filepath):
        """Save registration results to file."""
        result = {
            'registration_error': list(self._errors),
            'transformation': self.transformation,
            'alignment': self.alignment,
            'scale': self.scale,
            'state': self.state.value,
            'iterations': self.iterations,
            'elapsed': self.elapsed,
            'failure': None if self.failure is None else repr(self.failure),
        }
        cloud = self.registered_point_cloud
        if cloud is not None:
            result['registered_points'] = np.asarray(cloud.points)
            result['registered_colors'] = None if cloud.colors is None else np.asarray(cloud.colors)
            result['registered_normals'] = None if cloud.normals is None else np.asarray(cloud.normals)

        with open(filepath, 'wb') as f:
            pickle.dump(result, f)
        logger.info("Results saved to %s", filepath)

    @classmethod
    def load(cls, filepath):
        """Load previously saved registration results."""
        with open(filepath, 'rb') as f:
            data = pickle.load(f)

        results = cls()
        results._errors = list(data['registration_error'])
        results.transformation = data['transformation']
        results.alignment = data['alignment']
        results.scale = data['scale']
        results.state = IcpState(data['state'])
        results.iterations = data['iterations']
        results.elapsed = data['elapsed']
        results.failure = data['failure']
        if 'registered_points' in data:
            results.registered_point_cloud = PointCloud(
                data['registered_points'],
                colors=data['registered_colors'],
                normals=data['registered_normals'],
            )
        results.freeze()
        logger.info("Results loaded from %s", filepath)
        return results

    def __str__(self):
        if not self._errors:
            return "Icp: No Results!"
        history = ", ".join(f"{e:.6g}" for e in self._errors)
        lines = [
            f"State: {self.state.value}",
            f"Iterations: {self.iterations}",
            f"Initial error: {self._errors[0]:.6g}",
            f"Final error: {self._errors[-1]:.6g}",
            "Final transformation:",
            np.array2string(self.transformation, precision=6, suppress_small=True),
            f"Scale factor: {self.scale:.6g}",
            f"Error history: {history}",
        ]
        if self.failure is not None:
            lines.insert(1, f"Failure: {self.failure}")
        return "\n".join(lines)


class _LinearSystem:
    """Weighted normal equations accumulated at one transform."""

    def __init__(self, hessian, gradient, error, n_correspondences):
        self.hessian = hessian
        self.gradient = gradient
        self.error = error
        self.n_correspondences = n_correspondences


class Icp:
    """
    Iterative Closest Point registration of a current cloud onto a reference.

    The error metric and the M-estimator are chosen at construction; the
    optimisation loop is the same for all of them.
    """

    def __init__(self, error_kernel=None, mestimator=None, parameters=None,
                 n_jobs=1, logger=None):
        """
        Initialize the ICP engine.

        Args:
            error_kernel: ErrorKernel instance (default: PointToPoint)
            mestimator: MEstimator instance (default: HuberWeights)
            parameters: IcpParameters, or a dict of parameter values
            n_jobs: joblib workers for the correspondence search
            logger: logging.Logger receiving the progress messages
        """
        self.error_kernel = error_kernel if error_kernel is not None else PointToPoint()
        self.mestimator = mestimator if mestimator is not None else HuberWeights()
        self.n_jobs = n_jobs
        self.logger = logger if logger is not None else logging.getLogger(__name__)

        self._parameters = IcpParameters()
        if parameters is not None:
            self.set_parameters(parameters)

        self._reference = None
        self._current = None
        self._index = None
        self._state = IcpState.UNINITIALIZED
        self._results = IcpResults()

    @property
    def state(self):
        return self._state

    @property
    def results(self):
        return self._results

    def get_results(self):
        return self._results

    def get_parameters(self):
        return self._parameters

    def set_parameters(self, parameters):
        """
        Sets the parameters for the optimisation.

        Args:
            parameters: IcpParameters, or a dict accepted by IcpParameters
        """
        if isinstance(parameters, dict):
            try:
                parameters = IcpParameters(**parameters)
            except ValueError as exc:
                raise ConfigurationError(f"invalid ICP parameters:\n{exc}") from exc
        if not isinstance(parameters, IcpParameters):
            raise ConfigurationError(f"expected IcpParameters, got {type(parameters).__name__}")
        self._parameters = parameters

    def set_input_reference(self, cloud):
        """
        Set the fixed cloud and build its KD-tree.

        Raises:
            ConfigurationError: if the cloud is empty or lacks the normals the
                error metric needs
        """
        if cloud is None or cloud.is_empty():
            raise ConfigurationError("reference cloud is empty")
        self.error_kernel.check_normals(cloud.normals)

        self.logger.info("Building KD-tree over %d reference points", len(cloud))
        index = KDTree()
        index.build(cloud.points)
        self._reference = cloud
        self._index = index
        self._update_state()

    def set_input_current(self, cloud):
        """Set the cloud to be registered against the reference."""
        if cloud is None or cloud.is_empty():
            raise ConfigurationError("current cloud is empty")
        self._current = cloud
        self._update_state()

    def _update_state(self):
        if self._reference is not None and self._current is not None and self._index is not None:
            self._state = IcpState.READY

    def run(self):
        """
        Run the ICP until convergence, the iteration limit or a failure.

        Returns:
            IcpResults (also available afterwards through ``results``)

        Raises:
            ConfigurationError: if a cloud or the index is missing; no iteration runs
            CorrespondenceStarvation, NumericalSingularity: the run stopped in
                the FAILED state; the results keep the error history so far
        """
        if self._reference is None or self._current is None or self._index is None:
            exc = ConfigurationError("both reference and current clouds must be set before run()")
            self._reject(exc)
            raise exc

        params = self._parameters
        try:
            transform = self._initial_transform(params)
        except ConfigurationError as exc:
            self._reject(exc)
            raise

        results = IcpResults()
        self._results = results
        self._state = IcpState.ITERATING
        start = time.time()

        self.logger.info(
            "Starting ICP (%s, %s) with %d current and %d reference points",
            self.error_kernel.name, self.mestimator.name,
            len(self._current), len(self._reference),
        )
        self.logger.debug("ICP parameters:\n%s", params)

        iterations = 0
        state = IcpState.MAX_ITERATIONS_REACHED
        try:
            system = self._linearize(transform, params)
            results.append_error(system.error)
            self.logger.info("Initial error: %.6g (%d correspondences)",
                             system.error, system.n_correspondences)

            while iterations < params.max_iter:
                delta = self._solve(system, params.lambda_)
                transform.update(delta)
                iterations += 1

                system = self._linearize(transform, params)
                results.append_error(system.error)

                variation = abs(results.registration_error[-1] - results.registration_error[-2])
                self.logger.debug("Iter %3d: error=%.6g | variation=%.3g | correspondences=%d",
                                  iterations, system.error, variation, system.n_correspondences)
                if variation < params.min_variation:
                    state = IcpState.CONVERGED
                    break
        except RegistrationError as exc:
            self.logger.warning("ICP failed after %d iterations: %s", iterations, exc)
            self._finish(results, transform, IcpState.FAILED, iterations, start, failure=exc)
            raise

        self._finish(results, transform, state, iterations, start)
        return results

    def _initial_transform(self, params):
        # The guess is the pose of the current cloud; the engine moves the
        # current cloud, so it optimises the inverse
        guess = self.error_kernel.make_transform(params.initial_guess)
        return guess.inverse()

    def _linearize(self, transform, params):
        """Match the transformed current cloud and accumulate the weighted normal equations."""
        kernel = self.error_kernel
        working = transform.apply(self._current.points)
        correspondences = find_correspondences(
            working, self._index, params.max_correspondance_distance, n_jobs=self.n_jobs
        )

        n_correspondences = len(correspondences)
        if n_correspondences * kernel.residual_dim < kernel.dof:
            raise CorrespondenceStarvation(
                f"{n_correspondences} correspondences within "
                f"{params.max_correspondance_distance} cannot determine {kernel.dof} parameters"
            )

        reference = self._reference.points[correspondences.reference_indices]
        normals = None
        if kernel.requires_normals:
            normals = self._reference.normals[correspondences.reference_indices]

        residuals, jacobians = kernel.linearize(
            working[correspondences.source_indices], reference, normals
        )
        norms = np.linalg.norm(residuals, axis=1)
        weights = self.mestimator.weights(norms)

        hessian = np.einsum('n,nki,nkj->ij', weights, jacobians, jacobians)
        gradient = np.einsum('n,nki,nk->i', weights, jacobians, residuals)
        error = float(np.mean(weights * norms))
        return _LinearSystem(hessian, gradient, error, n_correspondences)

    def _solve(self, system, lambda_):
        """Solve ``H delta = -lambda g`` for the twist increment."""
        try:
            singular_values = np.linalg.svd(system.hessian, compute_uv=False)
            if (not np.all(np.isfinite(singular_values)) or singular_values[0] == 0
                    or singular_values[-1] / singular_values[0] < MIN_RECIPROCAL_CONDITION):
                raise NumericalSingularity(
                    f"normal equations are ill-conditioned "
                    f"(singular values {singular_values[-1]:.3g} .. {singular_values[0]:.3g})"
                )
            return np.linalg.solve(system.hessian, -lambda_ * system.gradient)
        except np.linalg.LinAlgError as exc:
            raise NumericalSingularity(f"normal equations could not be solved: {exc}") from exc

    def _reject(self, failure):
        """Fail before iterating; results of an earlier run are discarded."""
        results = IcpResults()
        results.state = IcpState.FAILED
        results.failure = failure
        results.freeze()
        self._results = results
        self._state = IcpState.FAILED

    def _finish(self, results, transform, state, iterations, start, failure=None):
        motion = transform.inverse()
        results.transformation = motion.matrix
        results.scale = motion.scale
        results.alignment = transform.matrix
        results.registered_point_cloud = self._current.transformed(transform)
        results.state = state
        results.iterations = iterations
        results.failure = failure
        results.elapsed = time.time() - start
        results.freeze()
        self._state = state

        if state is not IcpState.FAILED:
            self.logger.info("ICP %s after %d iterations: error %.6g -> %.6g (%.3fs)",
                             state.value, iterations, results.registration_error[0],
                             results.final_error, results.elapsed)


def build_icp(config=None, logger=None):
    """
    Build an ICP engine from a RegistrationConfig.

    Args:
        config: RegistrationConfig (default configuration when None)
        logger: Optional logger injected into the engine

    Returns:
        Icp instance with its parameters set
    """
    if config is None:
        config = RegistrationConfig()
    return Icp(
        error_kernel=get_error_kernel(config.metric),
        mestimator=get_mestimator(config.mestimator, config.mestimator_params),
        parameters=config.parameters,
        n_jobs=config.n_jobs,
        logger=logger,
    )
