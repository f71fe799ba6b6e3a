import numpy as np
import pytest

from molsync import config
from molsync.orientation import (
    axis_aligned_view,
    covariance,
    fit_distance,
    frame_box,
    jacobi_eigen,
    principal_axes,
    solve_orientation,
)


@pytest.fixture
def slab():
    """Points spread most along x, less along y, least along z."""
    rng = np.random.default_rng(7)
    return rng.normal(size=(200, 3)) * np.array([10.0, 4.0, 1.0]) + np.array([5.0, -2.0, 3.0])


def test_jacobi_matches_numpy_eigenvalues(slab):
    matrix = covariance(slab)
    values, vectors = jacobi_eigen(matrix)
    assert np.allclose(sorted(values), np.linalg.eigvalsh(matrix))
    assert np.allclose(vectors.T @ vectors, np.eye(3), atol=1e-12)
    assert np.allclose(matrix @ vectors, vectors * values, atol=1e-8)


def test_jacobi_on_zero_matrix_is_identity():
    values, vectors = jacobi_eigen(np.zeros((3, 3)))
    assert np.array_equal(values, np.zeros(3))
    assert np.array_equal(vectors, np.eye(3))


def test_jacobi_rotates_when_diagonal_entries_are_equal():
    matrix = np.array([[1.0, 1.0, 0.0], [1.0, 1.0, 0.0], [0.0, 0.0, 0.0]])
    values, vectors = jacobi_eigen(matrix)
    assert np.allclose(sorted(values), [0.0, 0.0, 2.0], atol=1e-12)
    assert np.allclose(matrix @ vectors, vectors * values, atol=1e-12)


def test_diagonal_line_orients_along_its_direction():
    points = [(0, 0, 0), (1, 1, 0), (2, 2, 0), (3, 3, 0)]
    solution = solve_orientation(points)
    diagonal = np.array([1.0, 1.0, 0.0]) / np.sqrt(2.0)
    assert abs(np.dot(solution.axes[0], diagonal)) == pytest.approx(1.0)
    assert solution.eigenvalues[0] > 0


def test_principal_axes_sorted_by_variance(slab):
    center, values, axes = principal_axes(slab)
    assert values[0] >= values[1] >= values[2]
    assert abs(axes[0][0]) > 0.95
    assert abs(axes[2][2]) > 0.95
    assert np.allclose(center, slab.mean(axis=0))


def test_view_looks_through_thinnest_dimension(slab):
    solution = solve_orientation(slab, fov=45.0)
    assert abs(solution.view_dir[2]) > 0.95
    assert abs(solution.up_dir[1]) > 0.95
    assert np.dot(np.cross(solution.up_dir, solution.view_dir), solution.axes[0]) >= 0
    assert solution.distance == pytest.approx(
        fit_distance(solution.size, 45.0, config.FIT_MARGIN)
    )


def test_orientation_is_deterministic(slab):
    first = solve_orientation(slab)
    for _ in range(3):
        again = solve_orientation(slab.copy())
        assert np.array_equal(first.view_dir, again.view_dir)
        assert np.array_equal(first.up_dir, again.up_dir)


def test_size_is_twice_max_projection():
    points = np.array([[-3.0, 0.0, 0.0], [3.0, 0.0, 0.0], [0.0, 1.0, 0.0], [0.0, -1.0, 0.0]])
    solution = solve_orientation(points)
    assert solution.size == pytest.approx(6.0)


def test_empty_points_give_no_orientation():
    assert solve_orientation(np.zeros((0, 3))) is None
    assert frame_box([]) is None
    assert axis_aligned_view([]) is None


@pytest.mark.parametrize(
    "points",
    [
        [[1.0, 2.0, 3.0]],
        [[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [2.0, 0.0, 0.0]],
        [[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [1.0, 1.0, 0.0]],
    ],
)
def test_degenerate_points_give_orthonormal_frame(points):
    solution = solve_orientation(points)
    axes = np.array(solution.axes)
    assert np.all(np.isfinite(axes))
    assert np.allclose(axes @ axes.T, np.eye(3), atol=1e-9)
    assert np.isfinite(solution.distance)


def test_frame_box_respects_min_size():
    framing = frame_box([[1.0, 1.0, 1.0]], fov=45.0, margin=1.0, min_size=2.0)
    assert framing.size == 2.0
    assert np.allclose(framing.center, [1.0, 1.0, 1.0])


def test_axis_aligned_view_uses_shortest_extent():
    points = [[0.0, 0.0, 0.0], [10.0, 0.0, 0.0], [0.0, 6.0, 0.0], [0.0, 0.0, 1.0]]
    center, view_dir, distance = axis_aligned_view(points)
    assert view_dir.tolist() == [0.0, 0.0, 1.0]
    assert distance == pytest.approx(fit_distance(10.0, config.CAMERA_FOV, config.ZOOM_MARGIN))
