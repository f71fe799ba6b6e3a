"""
Principal-axis camera orientation.

The camera looks along the axis of least spread of a point set, with the
axis of middle spread as the up direction, so the widest extent of the
structure lies across the screen. Axes come from a cyclic Jacobi
eigen-decomposition of the 3x3 covariance matrix.

Also contains the bounding-box helpers used to frame a selection.
"""

import math
from collections import namedtuple

import numpy as np

from . import config

Orientation = namedtuple(
    "Orientation", ["center", "view_dir", "up_dir", "axes", "eigenvalues", "size", "distance"]
)

Framing = namedtuple("Framing", ["center", "size", "distance"])


def as_points(points):
    return np.asarray(points, dtype=np.float64).reshape(-1, 3)


def centroid(points):
    return as_points(points).mean(axis=0)


def covariance(points, center=None):
    points = as_points(points)
    if center is None:
        center = points.mean(axis=0)
    centered = points - center
    return centered.T @ centered / len(points)


def jacobi_rotate(a, v, p, q, epsilon=config.JACOBI_EPSILON):
    """
    Zero a[p, q] of symmetric matrix a with one Jacobi rotation, in place.

    The rotation is accumulated into the columns of v. Skipped when a[p, q]
    is already below epsilon, so zero or rank-deficient input never divides
    by zero.
    """
    app, aqq, apq = a[p, p], a[q, q], a[p, q]
    if abs(apq) < epsilon:
        return
    tau = (aqq - app) / (2.0 * apq)
    t = math.copysign(1.0, tau) / (abs(tau) + math.sqrt(1.0 + tau * tau))
    c = 1.0 / math.sqrt(1.0 + t * t)
    s = t * c
    for r in range(3):
        if r == p or r == q:
            continue
        arp, arq = a[r, p], a[r, q]
        a[r, p] = c * arp - s * arq
        a[r, q] = s * arp + c * arq
        a[p, r] = a[r, p]
        a[q, r] = a[r, q]
    a[p, p] = c * c * app - 2.0 * s * c * apq + s * s * aqq
    a[q, q] = s * s * app + 2.0 * s * c * apq + c * c * aqq
    a[p, q] = 0.0
    a[q, p] = 0.0
    for r in range(3):
        vrp, vrq = v[r, p], v[r, q]
        v[r, p] = c * vrp - s * vrq
        v[r, q] = s * vrp + c * vrq


def jacobi_eigen(matrix, sweeps=config.JACOBI_SWEEPS, epsilon=config.JACOBI_EPSILON):
    """
    Eigen-decomposition of a real symmetric 3x3 matrix.

    Runs a fixed number of sweeps over the pairs (0, 1), (0, 2), (1, 2).
    Returns (eigenvalues, eigenvectors) with eigenvectors as columns, in the
    order the diagonal ends up in (unsorted).
    """
    a = np.array(matrix, dtype=np.float64).reshape(3, 3)
    v = np.eye(3)
    for _ in range(sweeps):
        jacobi_rotate(a, v, 0, 1, epsilon)
        jacobi_rotate(a, v, 0, 2, epsilon)
        jacobi_rotate(a, v, 1, 2, epsilon)
    return np.diag(a).copy(), v


def principal_axes(points):
    """
    Principal axes of a point set, largest variance first.

    Returns (center, eigenvalues, axes) where axes[k] is the unit vector of
    the k-th largest eigenvalue.
    """
    points = as_points(points)
    center = points.mean(axis=0)
    values, vectors = jacobi_eigen(covariance(points, center))
    order = sorted(range(3), key=lambda k: -values[k])
    axes = [vectors[:, k] / np.linalg.norm(vectors[:, k]) for k in order]
    return center, values[order], axes


def fit_distance(size, fov, margin):
    """Camera distance at which an extent of size fits a fov (degrees) with margin."""
    return (size / 2.0) / math.tan(math.radians(fov) / 2.0) * margin


def solve_orientation(points, fov=config.CAMERA_FOV, margin=config.FIT_MARGIN):
    """
    Camera frame that looks through the thinnest dimension of points.

    The view direction is the smallest-variance axis, the up direction the
    middle one. If up x view points away from the largest axis the view
    direction is negated, which fixes the handedness of the frame. The
    distance fits twice the largest projection onto the two largest axes.
    Returns None for an empty point set.
    """
    points = as_points(points)
    if len(points) == 0:
        return None
    center, values, axes = principal_axes(points)
    view_dir = axes[2].copy()
    up_dir = axes[1].copy()

    right = np.cross(up_dir, view_dir)
    if np.dot(right, axes[0]) < 0:
        view_dir = -view_dir

    centered = points - center
    proj0 = np.abs(centered @ axes[0])
    proj1 = np.abs(centered @ axes[1])
    max_extent = float(max(proj0.max(), proj1.max()))
    size = max_extent * 2.0

    return Orientation(
        center=center,
        view_dir=view_dir,
        up_dir=up_dir,
        axes=axes,
        eigenvalues=values,
        size=size,
        distance=fit_distance(size, fov, margin),
    )


def bounding_box(points):
    points = as_points(points)
    return points.min(axis=0), points.max(axis=0)


def frame_box(points, fov=config.CAMERA_FOV, margin=config.FIT_MARGIN, min_size=0.0):
    """Framing of the bounding box of points, or None if there are none."""
    points = as_points(points)
    if len(points) == 0:
        return None
    lo, hi = bounding_box(points)
    center = (lo + hi) / 2.0
    size = max(float((hi - lo).max()), min_size)
    return Framing(center=center, size=size, distance=fit_distance(size, fov, margin))


def axis_aligned_view(points, fov=config.CAMERA_FOV):
    """
    Look along the shortest bounding-box axis, centred on the centroid.

    Returns (center, view_dir, distance) or None if there are no points.
    """
    points = as_points(points)
    if len(points) == 0:
        return None
    center = points.mean(axis=0)
    lo, hi = bounding_box(points)
    extents = hi - lo
    order = sorted(range(3), key=lambda k: extents[k])
    view_dir = np.zeros(3)
    view_dir[order[0]] = 1.0
    size = max(extents[order[1]], extents[order[2]], config.MIN_ZOOM_SIZE)
    return center, view_dir, fit_distance(size, fov, config.ZOOM_MARGIN)
