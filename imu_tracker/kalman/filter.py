"""
Kalman filters that smooth the dead-reckoned position.
"""

import logging
import numpy as np
from typing import Any, Dict
from ..math.constants import (INITIAL_POSITION_UNCERTAINTY, MEASUREMENT_NOISE, MIN_INNOVATION_VARIANCE,
                              PROCESS_NOISE)

logger = logging.getLogger(__name__)

class FilterDivergenceError(RuntimeError):
    """Raised when a filter update would produce a non-finite estimate."""

class PositionFilter:
    """
    Decoupled per-axis Kalman filter for a 2D position.

    Each axis is an independent scalar filter. The covariance is kept as a
    2x2 matrix for consumers, but its off-diagonal terms stay zero.
    """

    def __init__(self, process_noise: float = PROCESS_NOISE,
                 measurement_noise: float = MEASUREMENT_NOISE,
                 initial_uncertainty: float = INITIAL_POSITION_UNCERTAINTY):
        """
        Initialize the position filter.

        Args:
            process_noise: Uncertainty added to each axis per update
            measurement_noise: Variance of the dead-reckoned measurement
            initial_uncertainty: Starting variance of each axis
        """
        if process_noise < 0 or measurement_noise < 0:
            raise ValueError("Noise parameters must be non-negative")
        if initial_uncertainty < 0:
            raise ValueError("Initial uncertainty must be non-negative")

        self.process_noise = float(process_noise)
        self.measurement_noise = float(measurement_noise)
        self.initial_uncertainty = float(initial_uncertainty)

        self.state = np.zeros(2)
        self.P = self._initialize_covariance()
        self.last_gain = np.zeros(2)

        # Statistics
        self.update_count = 0

    def _initialize_covariance(self) -> np.ndarray:
        """Initialize position covariance matrix."""
        return np.eye(2) * self.initial_uncertainty

    def update(self, measurement: np.ndarray) -> np.ndarray:
        """
        Run one predict/update cycle with a position measurement.

        Args:
            measurement: Dead-reckoned position [x, y]

        Returns:
            Filtered position
        """
        z = np.asarray(measurement, dtype=float)

        # Predict: uncertainty grows between measurements
        variance = np.diag(self.P) + self.process_noise

        # Gain (denominator clamped away from zero)
        innovation_variance = np.maximum(variance + self.measurement_noise,
                                         MIN_INNOVATION_VARIANCE)
        gain = variance / innovation_variance

        # Update
        innovation = z - self.state
        state = self.state + gain * innovation
        variance = variance * (1.0 - gain)

        if not (np.all(np.isfinite(state)) and np.all(np.isfinite(variance))):
            logger.error("Position filter diverged: measurement=%s gain=%s", z, gain)
            raise FilterDivergenceError(
                f"Non-finite position estimate from measurement {z.tolist()}")

        self.state = state
        self.P = np.diag(variance)
        self.last_gain = gain
        self.update_count += 1

        return self.state.copy()

    @property
    def position(self) -> np.ndarray:
        return self.state.copy()

    @property
    def covariance(self) -> np.ndarray:
        return self.P.copy()

    def get_uncertainty(self) -> np.ndarray:
        """Get per-axis standard deviation."""
        return np.sqrt(np.diag(self.P))

    def reset(self):
        """Reset filter to zero position and initial uncertainty."""
        self.state = np.zeros(2)
        self.P = self._initialize_covariance()
        self.last_gain = np.zeros(2)
        self.update_count = 0

    def get_statistics(self) -> Dict[str, Any]:
        """Get filter statistics."""
        return {
            'updates': self.update_count,
            'gain': self.last_gain.tolist(),
            'position_uncertainty': self.get_uncertainty().tolist()
        }

class CorrelatedPositionFilter(PositionFilter):
    """
    Full 2x2 Kalman filter for a 2D position.

    Uses a matrix gain K = P (P + R)^-1, so correlated covariance terms are
    propagated. With diagonal noise and a diagonal starting covariance it
    tracks the same trajectory as PositionFilter.
    """

    def __init__(self, process_noise: float = PROCESS_NOISE,
                 measurement_noise: float = MEASUREMENT_NOISE,
                 initial_uncertainty: float = INITIAL_POSITION_UNCERTAINTY):
        super().__init__(process_noise, measurement_noise, initial_uncertainty)
        self.last_gain = np.zeros((2, 2))

    def update(self, measurement: np.ndarray) -> np.ndarray:
        z = np.asarray(measurement, dtype=float)

        Q = np.eye(2) * self.process_noise
        R = np.eye(2) * self.measurement_noise

        # Predict
        P = self.P + Q

        # Innovation covariance
        S = P + R

        # Kalman gain (handle potential singularity)
        try:
            K = P @ np.linalg.inv(S)
        except np.linalg.LinAlgError:
            K = P @ np.linalg.pinv(S)

        # Update state and covariance
        state = self.state + K @ (z - self.state)
        I = np.eye(2)
        P = (I - K) @ P

        if not (np.all(np.isfinite(state)) and np.all(np.isfinite(P))):
            logger.error("Correlated position filter diverged: measurement=%s", z)
            raise FilterDivergenceError(
                f"Non-finite position estimate from measurement {z.tolist()}")

        self.state = state
        self.P = P
        self.last_gain = K
        self.update_count += 1

        return self.state.copy()

    def reset(self):
        super().reset()
        self.last_gain = np.zeros((2, 2))

def make_position_filter(mode: str = "decoupled", **kwargs) -> PositionFilter:
    """
    Factory for position filters.

    Args:
        mode: 'decoupled' (per-axis scalar filters) or 'correlated' (full 2x2)
        **kwargs: Passed to the filter constructor

    Raises:
        ValueError: If mode is not recognized
    """
    if mode == "decoupled":
        return PositionFilter(**kwargs)
    elif mode == "correlated":
        return CorrelatedPositionFilter(**kwargs)
    else:
        raise ValueError(f"Unknown filter mode: {mode}. Use 'decoupled' or 'correlated'")
