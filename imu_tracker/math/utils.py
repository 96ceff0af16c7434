"""
Mathematical utility functions for inertial tracking.
"""

import numpy as np
import math

from .constants import TWO_PI

def rotation_matrix(angle):
    """
    Create a 2D rotation matrix for the given angle.

    Args:
        angle (float): Angle in radians

    Returns:
        np.ndarray: 2x2 rotation matrix
    """
    cos_a = math.cos(angle)
    sin_a = math.sin(angle)

    return np.array([
        [cos_a, -sin_a],
        [sin_a,  cos_a]
    ])

def rotate_vector(vector, heading):
    """
    Rotate a device-frame 2D vector into the world frame.

    Only the first two components of ``vector`` are used, so a raw 3-axis
    accelerometer reading can be passed directly.

    Args:
        vector: Device-frame vector [x, y] (or [x, y, z])
        heading (float): Current heading in radians

    Returns:
        np.ndarray: World-frame vector [x, y]
    """
    v = np.asarray(vector, dtype=float)
    if v.ndim != 1 or v.shape[0] < 2:
        raise ValueError(f"Expected a vector with at least 2 components, got shape {v.shape}")
    return rotation_matrix(heading) @ v[:2]

def wrap_heading(angle):
    """
    Wrap an accumulated heading into the open range (-2*pi, 2*pi).

    Uses floating-point modulus, so the sign of the input is kept:
    a heading that has turned 370 degrees counter-clockwise reads 10 degrees,
    one that has turned 370 degrees clockwise reads -10 degrees.

    Args:
        angle (float): Angle in radians

    Returns:
        float: Wrapped angle
    """
    return math.fmod(angle, TWO_PI)

def is_finite_vector(vector) -> bool:
    """Check that every component of a vector is finite."""
    return bool(np.all(np.isfinite(np.asarray(vector, dtype=float))))
