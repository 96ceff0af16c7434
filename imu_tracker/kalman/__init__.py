"""
Kalman filtering and integration models for the inertial estimator.
"""

from .filter import (PositionFilter, CorrelatedPositionFilter, FilterDivergenceError,
                     make_position_filter)
from .state import EstimatorState, EstimatorSnapshot
from .models import MotionModel, OrientationModel

__all__ = ["PositionFilter", "CorrelatedPositionFilter", "FilterDivergenceError",
           "make_position_filter", "EstimatorState", "EstimatorSnapshot",
           "MotionModel", "OrientationModel"]
