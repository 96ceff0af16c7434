"""
Inertial sample types and the per-stream sample clock.
"""

import logging
import numpy as np
import time
from dataclasses import dataclass
from typing import Optional
from ..math.constants import NOMINAL_SAMPLE_PERIOD_S

logger = logging.getLogger(__name__)

@dataclass
class AccelerationSample:
    """Raw accelerometer sample in the device frame (g)."""

    x: float
    y: float
    z: float

    # Timestamp (seconds)
    timestamp: Optional[float] = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = time.monotonic()

    @property
    def vector(self) -> np.ndarray:
        """Get acceleration as numpy array."""
        return np.array([self.x, self.y, self.z], dtype=float)

@dataclass
class AngularRateSample:
    """Raw gyroscope sample in the device frame (rad/s)."""

    x: float
    y: float
    z: float

    # Timestamp (seconds)
    timestamp: Optional[float] = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = time.monotonic()

    @property
    def vector(self) -> np.ndarray:
        """Get angular rate as numpy array."""
        return np.array([self.x, self.y, self.z], dtype=float)

class SampleClock:
    """
    Elapsed time between consecutive samples of one sensor stream.

    The first sample (and the first after reset) gets the nominal sample
    period. A timestamp earlier than the previous one is a caller error; the
    interval is clamped to the nominal period and a warning is logged, so a
    negative step never reaches the integrators.
    """

    def __init__(self, default_dt: float = NOMINAL_SAMPLE_PERIOD_S, name: str = "sensor"):
        if default_dt <= 0:
            raise ValueError("Default time step must be positive")
        self.default_dt = float(default_dt)
        self.name = name
        self.last_time: Optional[float] = None
        self.clamped_count = 0

    def tick(self, timestamp: float) -> float:
        """
        Compute the time step for a new sample and remember its timestamp.

        Args:
            timestamp: Sample time in seconds

        Returns:
            Time step in seconds (never negative)
        """
        if self.last_time is None:
            dt = self.default_dt
        else:
            dt = timestamp - self.last_time
            if dt < 0:
                self.clamped_count += 1
                logger.warning("%s timestamp went backwards by %.6fs, using default step %.6fs",
                               self.name, -dt, self.default_dt)
                dt = self.default_dt

        self.last_time = timestamp
        return dt

    def reset(self):
        """Forget the previous timestamp."""
        self.last_time = None
