#!/usr/bin/env python3
"""
Command-line entry point for ICP point cloud registration.

This script loads the clouds, runs the registration and reports, saves and
plots the results.
"""

import argparse
import logging
import sys

import numpy as np

from icpreg import (ConfigurationError, IcpResults, RegistrationConfig, RegistrationError,
                    build_icp, create_transformation_matrix, load_config)
from icpreg.config import build_config
from icpreg.io import estimate_normals, read_point_cloud, write_point_cloud
from icpreg.visualization import plot_comparison, plot_convergence

logger = logging.getLogger("run_icp")


def load_clouds(reference_path, current_path=None, perturbation=None, with_normals=False):
    """
    Load the reference cloud and the current cloud.

    When no current cloud is given, it is generated by moving the reference
    by ``perturbation`` = (tx, ty, tz, rx, ry, rz).
    """
    reference = read_point_cloud(reference_path)
    if with_normals and not reference.has_normals:
        logger.info("Reference has no normals, estimating them")
        reference = estimate_normals(reference)

    if current_path is not None:
        current = read_point_cloud(current_path)
    else:
        matrix = create_transformation_matrix(*perturbation)
        logger.info("Generating the current cloud with transformation:\n%s", matrix)
        current = reference.transformed(matrix)
    return reference, current


def run_registration(config, reference, current):
    """Run one registration and print its summary. Returns the results."""
    icp = build_icp(config)
    icp.set_input_reference(reference)
    icp.set_input_current(current)

    try:
        results = icp.run()
    except RegistrationError as exc:
        print(f"\nRegistration failed: {exc}")
        results = icp.results

    print(f"\n{'='*80}")
    print("RESULTS")
    print("="*80)
    print(results)
    return results


def make_config(args):
    overrides = {}
    parameters = {}
    if args.metric is not None:
        overrides['metric'] = args.metric
    if getattr(args, 'mestimator', None) is not None:
        overrides['mestimator'] = args.mestimator
    if args.threshold is not None:
        overrides['mestimator_params'] = {'threshold': args.threshold}
    if args.n_jobs is not None:
        overrides['n_jobs'] = args.n_jobs
    if args.lambda_ is not None:
        parameters['lambda'] = args.lambda_
    if args.max_iter is not None:
        parameters['max_iter'] = args.max_iter
    if args.min_variation is not None:
        parameters['min_variation'] = args.min_variation
    if args.max_distance is not None:
        parameters['max_correspondance_distance'] = args.max_distance
    if parameters:
        overrides['parameters'] = parameters

    if args.config is not None:
        return load_config(args.config, overrides)
    return build_config({}, overrides)


def register(args):
    config = make_config(args)
    reference, current = load_clouds(
        args.reference, args.current, args.perturb,
        with_normals=config.metric == 'point_to_plane',
    )
    results = run_registration(config, reference, current)

    if args.output is not None and results.registered_point_cloud is not None:
        write_point_cloud(args.output, results.registered_point_cloud)
    if args.save is not None:
        results.save(args.save)
    if args.plot is not None or args.show:
        plot_convergence(results, save_path=args.plot, show=args.show)
    return results


def compare(args):
    """Compare plain least squares against Huber weighting on the same clouds."""
    base = make_config(args)
    reference, current = load_clouds(
        args.reference, args.current, args.perturb,
        with_normals=base.metric == 'point_to_plane',
    )
    threshold = base.mestimator_params.get('threshold', 1.0)

    runs = {}
    for mestimator, description in [('none', 'Least squares'),
                                    ('huber', f'Huber (k={threshold})')]:
        print(f"\n{'='*80}")
        print(f"Testing: {description}")
        print("="*80)
        config = RegistrationConfig(**{**base.model_dump(), 'mestimator': mestimator})
        runs[description] = run_registration(config, reference, current)

    plot_comparison(runs, save_path=args.plot, show=args.show)
    return runs


def load(args):
    results = IcpResults.load(args.file)
    print(results)
    if args.plot is not None or args.show:
        plot_convergence(results, save_path=args.plot, show=args.show)
    return results


def add_registration_arguments(parser):
    parser.add_argument('reference', type=str, help='Path to the reference (fixed) point cloud')
    parser.add_argument('current', type=str, nargs='?', default=None,
                        help='Path to the current (moving) point cloud')
    parser.add_argument('--perturb', type=float, nargs=6,
                        metavar=('TX', 'TY', 'TZ', 'RX', 'RY', 'RZ'),
                        default=[0.0, 0.05, 0.0, np.pi / 200, np.pi / 200, 0.0],
                        help='Transformation applied to the reference when no current cloud is given')
    parser.add_argument('--config', type=str, default=None, help='YAML registration configuration')
    parser.add_argument('--metric', type=str, default=None,
                        choices=['point_to_point', 'point_to_point_similarity', 'point_to_plane'],
                        help='Error metric')
    parser.add_argument('--threshold', type=float, default=None, help='Huber threshold')
    parser.add_argument('--lambda', dest='lambda_', type=float, default=None,
                        help='Step damping factor')
    parser.add_argument('--max-iter', type=int, default=None, help='Maximum number of iterations')
    parser.add_argument('--min-variation', type=float, default=None,
                        help='Stop when the error changes less than this')
    parser.add_argument('--max-distance', type=float, default=None,
                        help='Maximum correspondence distance')
    parser.add_argument('--n-jobs', type=int, default=None,
                        help='Workers for the correspondence search')
    parser.add_argument('--plot', type=str, default=None, help='Save the convergence plot here')
    parser.add_argument('--show', action='store_true', help='Show the plot in a window')


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='ICP Point Cloud Registration',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Register a cloud against a perturbed copy of itself
  python run_icp.py register models/teapot.pcd

  # Register two clouds with point-to-plane error and a YAML configuration
  python run_icp.py register ref.ply cur.ply --metric point_to_plane --config icp.yaml

  # Compare least squares and Huber weighting
  python run_icp.py compare ref.ply cur.ply --plot comparison.png

  # Print saved results
  python run_icp.py load --file icp_results.pkl
        """
    )
    parser.add_argument('-v', '--verbose', action='store_true', help='Log every iteration')

    subparsers = parser.add_subparsers(dest='mode', help='Mode')

    register_parser = subparsers.add_parser('register', help='Run one registration')
    add_registration_arguments(register_parser)
    register_parser.add_argument('--mestimator', type=str, default=None, choices=['huber', 'none'],
                                 help='Robust weighting')
    register_parser.add_argument('--output', type=str, default=None,
                                 help='Write the registered cloud here')
    register_parser.add_argument('--save', type=str, default=None,
                                 help='Pickle the results here')

    compare_parser = subparsers.add_parser('compare', help='Compare M-estimators')
    add_registration_arguments(compare_parser)

    load_parser = subparsers.add_parser('load', help='Print saved results')
    load_parser.add_argument('--file', type=str, default='icp_results.pkl',
                             help='Path to saved results file')
    load_parser.add_argument('--plot', type=str, default=None, help='Save the convergence plot here')
    load_parser.add_argument('--show', action='store_true', help='Show the plot in a window')

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
    )

    if args.mode is None:
        parser.print_help()
        return 1

    try:
        if args.mode == 'register':
            register(args)
        elif args.mode == 'compare':
            compare(args)
        elif args.mode == 'load':
            load(args)
    except ConfigurationError as exc:
        logger.error("%s", exc)
        return 2
    return 0


if __name__ == '__main__':
    sys.exit(main())
