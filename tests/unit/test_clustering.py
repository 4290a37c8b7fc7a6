import pytest

from insight_engine.analytics import AnalyticsInputError, InvalidK, cluster

ROWS = [
    {"x": 1.0, "y": 1.0},
    {"x": 1.2, "y": 0.9},
    {"x": 0.8, "y": 1.1},
    {"x": 10.0, "y": 10.0},
    {"x": 10.2, "y": 9.9},
    {"x": 9.8, "y": 10.1},
]


def test_separated_groups_land_in_distinct_clusters():
    result = cluster(ROWS, ["x", "y"], 2)

    assert [assignment.cluster_id for assignment in result.clusters] == [0, 0, 0, 1, 1, 1]
    assert len(result.centroids) == 2
    assert all(assignment.centroid_distance >= 0 for assignment in result.clusters)
    assert result.iterations >= 1


def test_clustering_is_deterministic():
    first = cluster(ROWS, ["x", "y"], 3)
    second = cluster(ROWS, ["x", "y"], 3)

    assert first.clusters == second.clusters
    assert first.centroids == second.centroids


def test_centroids_are_in_normalised_space():
    result = cluster(ROWS, ["x", "y"], 2)

    for centroid in result.centroids:
        assert all(0.0 <= value <= 1.0 for value in centroid)


@pytest.mark.parametrize("k", [0, 1, 7])
def test_invalid_k(k):
    with pytest.raises(InvalidK):
        cluster(ROWS, ["x", "y"], k)


def test_k_equal_to_row_count_is_allowed():
    result = cluster(ROWS, ["x"], len(ROWS))

    assert sorted(assignment.cluster_id for assignment in result.clusters) == list(range(len(ROWS)))


def test_missing_or_empty_features():
    with pytest.raises(AnalyticsInputError):
        cluster(ROWS, ["z"], 2)
    with pytest.raises(AnalyticsInputError):
        cluster(ROWS, [], 2)
