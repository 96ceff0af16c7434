"""
Mathematical utilities for inertial tracking calculations.
"""

from .utils import rotation_matrix, rotate_vector, wrap_heading, is_finite_vector
from .constants import *

__all__ = ["rotation_matrix", "rotate_vector", "wrap_heading", "is_finite_vector"]
