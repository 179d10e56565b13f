"""Nearest neighbor correspondences between the current and the reference cloud."""

from collections import namedtuple

import numpy as np
from joblib import Parallel, delayed, effective_n_jobs

Correspondence = namedtuple("Correspondence", ["source_index", "reference_index", "distance"])


class Correspondences:
    """
    Correspondence set of one iteration, stored as parallel arrays.

    Source indices are increasing (current-cloud order). Reference indices
    may repeat.
    """

    def __init__(self, source_indices, reference_indices, distances):
        self.source_indices = np.asarray(source_indices, dtype=np.int64)
        self.reference_indices = np.asarray(reference_indices, dtype=np.int64)
        self.distances = np.asarray(distances, dtype=np.float64)

    def __len__(self):
        return self.source_indices.shape[0]

    def __iter__(self):
        for source_index, reference_index, distance in zip(
            self.source_indices, self.reference_indices, self.distances
        ):
            yield Correspondence(int(source_index), int(reference_index), float(distance))

    def __getitem__(self, i):
        return Correspondence(
            int(self.source_indices[i]), int(self.reference_indices[i]), float(self.distances[i])
        )

    def mean_distance(self):
        if len(self) == 0:
            return float("nan")
        return float(np.mean(self.distances))


def _query_chunk(index, points, max_distance):
    return index.query(points, max_distance)


def find_correspondences(points, index, max_distance=np.inf, n_jobs=1, backend="loky"):
    """
    Find the nearest reference point of every query point.

    Args:
        points: Current cloud points (already transformed), shape (N, 3)
        index: KDTree built over the reference cloud
        max_distance: Points without a neighbor within this distance are dropped
        n_jobs: Number of joblib workers used for the queries
        backend: joblib backend

    Returns:
        Correspondences in query order
    """
    points = np.asarray(points, dtype=np.float64)
    n_points = points.shape[0]
    if n_points == 0:
        return Correspondences([], [], [])

    n_chunks = max(1, min(n_points, effective_n_jobs(n_jobs)))
    chunks = np.array_split(np.arange(n_points), n_chunks)

    results = Parallel(n_jobs=n_jobs, backend=backend)(
        delayed(_query_chunk)(index, points[chunk], max_distance)
        for chunk in chunks
    )
    reference_indices = np.concatenate([r[0] for r in results])
    sq_distances = np.concatenate([r[1] for r in results])

    found = reference_indices >= 0
    return Correspondences(
        np.flatnonzero(found),
        reference_indices[found],
        np.sqrt(sq_distances[found]),
    )
