"""
Orbit camera and the camera animation state machine.

Camera holds position, orbit target and up vector, and converts them into
view/projection matrices in vispy's row-vector convention.

CameraAnimator keeps at most one animation record. A new request replaces a
running animation immediately, and tick() takes the current time explicitly
so animations are deterministic under test.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional

import numpy as np
from vispy.util.transforms import perspective

from . import config

logger = logging.getLogger(__name__)


def vector(*xyz):
    return np.array(xyz, dtype=np.float64)


def normalized(v):
    norm = np.linalg.norm(v)
    if norm == 0:
        return v
    return v / norm


def rotation_about_axis(axis, radians):
    """Rodrigues rotation matrix about a unit axis."""
    x, y, z = normalized(np.asarray(axis, dtype=np.float64))
    c, s = math.cos(radians), math.sin(radians)
    t = 1.0 - c
    return np.array(
        [
            [t * x * x + c, t * x * y - s * z, t * x * z + s * y],
            [t * x * y + s * z, t * y * y + c, t * y * z - s * x],
            [t * x * z - s * y, t * y * z + s * x, t * z * z + c],
        ]
    )


class Camera:
    """View transformation manager for an orbiting perspective camera."""

    def __init__(self, fov=config.CAMERA_FOV):
        self.fov = fov
        self.aspect = 1.0
        self.near = config.CAMERA_NEAR
        self.far = config.CAMERA_FAR
        self.position = vector(0, 0, config.CAMERA_START_DISTANCE)
        self.target = vector(0, 0, 0)
        self.up = vector(0, 1, 0)
        self.min_distance = config.MIN_DISTANCE
        self.max_distance = math.inf

    def copy_state(self):
        return self.position.copy(), self.target.copy(), self.up.copy()

    def offset(self):
        return self.position - self.target

    def distance(self):
        return float(np.linalg.norm(self.offset()))

    def resize(self, width, height):
        self.aspect = width / float(max(height, 1))

    def rotate(self, axis, degrees):
        """Rotate the camera about the orbit target around a world axis."""
        rotation = rotation_about_axis(axis, math.radians(degrees))
        self.position = self.target + rotation @ self.offset()
        self.up = normalized(rotation @ self.up)

    def rezoom(self, zoom_diff):
        """Move along the view line, clamped to [min_distance, max_distance]."""
        distance = self.distance()
        if distance == 0:
            return
        new_distance = min(max(distance + zoom_diff, self.min_distance), self.max_distance)
        self.position = self.target + self.offset() * (new_distance / distance)

    def view_matrix(self):
        forward = normalized(self.target - self.position)
        side = normalized(np.cross(forward, self.up))
        up = np.cross(side, forward)
        m = np.eye(4)
        m[0, :3] = side
        m[1, :3] = up
        m[2, :3] = -forward
        m[:3, 3] = -m[:3, :3] @ self.position
        return m.T.astype(np.float32)

    def projection_matrix(self):
        return perspective(self.fov, self.aspect, self.near, self.far).astype(np.float32)


def ease_in_out_quad(t):
    return 2 * t * t if t < 0.5 else -1 + (4 - 2 * t) * t


@dataclass
class CameraAnimation:
    start_target: np.ndarray
    end_target: np.ndarray
    start_position: np.ndarray
    end_position: Optional[np.ndarray]
    start_up: Optional[np.ndarray]
    end_up: Optional[np.ndarray]
    start_time: float
    duration: float

    def fraction(self, now):
        if self.duration <= 0:
            return 1.0
        return min(max((now - self.start_time) / self.duration, 0.0), 1.0)


class CameraAnimator:
    """
    Idle or animating, with one animation record at most.

    A request without an end position keeps the camera's offset from the
    target, so the orbit recentres without changing zoom or facing.
    """

    def __init__(self):
        self.animation = None

    @property
    def is_animating(self):
        return self.animation is not None

    def animate_to(
        self, camera, target, now, position=None, duration=config.CENTER_DURATION, up=None
    ):
        self.animation = CameraAnimation(
            start_target=camera.target.copy(),
            end_target=np.array(target, dtype=np.float64),
            start_position=camera.position.copy(),
            end_position=None if position is None else np.array(position, dtype=np.float64),
            start_up=None if up is None else camera.up.copy(),
            end_up=None if up is None else np.array(up, dtype=np.float64),
            start_time=now,
            duration=duration,
        )
        logger.debug("Camera animation to %s over %.2fs", self.animation.end_target, duration)

    def cancel(self):
        self.animation = None

    def tick(self, camera, now):
        """Advance the camera to time now; returns False when idle."""
        anim = self.animation
        if anim is None:
            return False
        t = anim.fraction(now)
        ease = ease_in_out_quad(t)

        camera.target = anim.start_target + (anim.end_target - anim.start_target) * ease
        if anim.end_position is not None:
            camera.position = (
                anim.start_position + (anim.end_position - anim.start_position) * ease
            )
        else:
            camera.position = camera.target + (anim.start_position - anim.start_target)
        if anim.start_up is not None and anim.end_up is not None:
            camera.up = normalized(anim.start_up + (anim.end_up - anim.start_up) * ease)

        if t >= 1:
            self.animation = None
        return True
