"""
K-means clustering over numeric feature columns.

Features are min-max normalised so no single column dominates the distance.
Initial centroids are picked deterministically (first row, then repeatedly
the row farthest from every chosen centroid), so the same input and ``k``
always yield the same assignments.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Sequence

from insight_engine.query.values import as_number

from .errors import AnalyticsInputError, InvalidK

DEFAULT_MAX_ITERATIONS = 50
CONVERGENCE_TOLERANCE = 1e-3

Vector = List[float]


@dataclass(slots=True)
class ClusterAssignment:
    data_index: int
    cluster_id: int
    centroid_distance: float


@dataclass(slots=True)
class ClusterResult:
    clusters: List[ClusterAssignment]
    centroids: List[Vector]
    iterations: int
    features: List[str] = field(default_factory=list)


def _distance(a: Sequence[float], b: Sequence[float]) -> float:
    return math.sqrt(sum((x - y) ** 2 for x, y in zip(a, b)))


def _feature_vectors(rows: Sequence[Mapping[str, Any]], features: Sequence[str]) -> List[Vector]:
    missing = [feature for feature in features if not any(feature in row for row in rows)]
    if missing:
        raise AnalyticsInputError(f"Clustering features not present in the result set: {', '.join(missing)}.")
    # non-numeric cells count as 0
    return [[as_number(row.get(feature)) or 0.0 for feature in features] for row in rows]


def _normalise(vectors: List[Vector]) -> List[Vector]:
    dimensions = len(vectors[0])
    lows = [min(vector[d] for vector in vectors) for d in range(dimensions)]
    highs = [max(vector[d] for vector in vectors) for d in range(dimensions)]
    return [
        [
            0.0 if highs[d] == lows[d] else (vector[d] - lows[d]) / (highs[d] - lows[d])
            for d in range(dimensions)
        ]
        for vector in vectors
    ]


def _initial_centroids(points: List[Vector], k: int) -> List[Vector]:
    chosen = [0]
    nearest = [_distance(point, points[0]) for point in points]
    while len(chosen) < k:
        candidate = max(
            (index for index in range(len(points)) if index not in chosen),
            key=lambda index: (nearest[index], -index),
        )
        chosen.append(candidate)
        nearest = [min(current, _distance(point, points[candidate])) for current, point in zip(nearest, points)]
    return [list(points[index]) for index in chosen]


def _assign(points: List[Vector], centroids: List[Vector]) -> List[ClusterAssignment]:
    assignments: List[ClusterAssignment] = []
    for index, point in enumerate(points):
        best_id = 0
        best_distance = math.inf
        for cluster_id, centroid in enumerate(centroids):
            distance = _distance(point, centroid)
            if distance < best_distance:
                best_id, best_distance = cluster_id, distance
        assignments.append(ClusterAssignment(data_index=index, cluster_id=best_id, centroid_distance=best_distance))
    return assignments


def _update(points: List[Vector], assignments: List[ClusterAssignment], centroids: List[Vector]) -> List[Vector]:
    dimensions = len(points[0])
    sums = [[0.0] * dimensions for _ in centroids]
    counts = [0] * len(centroids)
    for assignment in assignments:
        counts[assignment.cluster_id] += 1
        for d, value in enumerate(points[assignment.data_index]):
            sums[assignment.cluster_id][d] += value
    # an empty cluster keeps its previous centroid
    return [
        [total / counts[cluster_id] for total in sums[cluster_id]] if counts[cluster_id] else list(centroids[cluster_id])
        for cluster_id in range(len(centroids))
    ]


def cluster(
    rows: Sequence[Mapping[str, Any]],
    features: Sequence[str],
    k: int,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
) -> ClusterResult:
    if not features:
        raise AnalyticsInputError("Clustering needs at least one feature column.")
    if k < 2 or k > len(rows):
        raise InvalidK(f"k must be between 2 and the number of rows ({len(rows)}), got {k}.")
    if max_iterations < 1:
        raise AnalyticsInputError("max_iterations must be at least 1.")

    points = _normalise(_feature_vectors(rows, features))
    centroids = _initial_centroids(points, k)

    iterations = 0
    while iterations < max_iterations:
        assignments = _assign(points, centroids)
        updated = _update(points, assignments, centroids)
        movement = sum(_distance(new, old) for new, old in zip(updated, centroids))
        centroids = updated
        iterations += 1
        if movement < CONVERGENCE_TOLERANCE:
            break

    return ClusterResult(
        clusters=_assign(points, centroids),
        centroids=centroids,
        iterations=iterations,
        features=list(features),
    )
