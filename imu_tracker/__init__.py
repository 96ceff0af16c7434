"""
Inertial tracking: 2D position and heading from accelerometer and gyroscope samples.

This package provides platform-independent implementations of:
- Heading integration and device-to-world frame rotation
- Dead reckoning with a Kalman-filtered position
- A thread-safe estimator with snapshot publication
- Simulated sensor sources for testing
"""

__version__ = "1.0.0"
__author__ = "IMU Tracker Team"

from .config import Config, EstimatorConfig
from .estimator import InertialStateEstimator
from .kalman import PositionFilter, CorrelatedPositionFilter, FilterDivergenceError, EstimatorSnapshot
from .sensors import SampleClock, SensorSimulator, run_simulation
from .math import rotate_vector, rotation_matrix, wrap_heading

__all__ = [
    "Config",
    "EstimatorConfig",
    "InertialStateEstimator",
    "PositionFilter",
    "CorrelatedPositionFilter",
    "FilterDivergenceError",
    "EstimatorSnapshot",
    "SampleClock",
    "SensorSimulator",
    "run_simulation",
    "rotate_vector",
    "rotation_matrix",
    "wrap_heading"
]
