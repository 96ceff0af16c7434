"""
Estimator state representation and published snapshots.
"""

import numpy as np
from dataclasses import dataclass, field
from typing import Optional

def _frozen_copy(array: np.ndarray) -> np.ndarray:
    """Copy an array and mark the copy read-only."""
    copy = np.array(array, dtype=float, copy=True)
    copy.setflags(write=False)
    return copy

@dataclass
class EstimatorState:
    """
    Mutable state of the inertial state estimator.

    - position: Filtered world-frame position [x, y]
    - velocity: Dead-reckoning velocity [vx, vy] (internal)
    - predicted_position: Last dead-reckoned measurement fed to the filter
    - raw_acceleration: Most recent raw accelerometer sample [x, y, z]
    - raw_angular_rate: Most recent raw gyroscope sample [x, y, z]
    - heading: Integrated heading in radians, wrapped into (-2*pi, 2*pi)
    - position_uncertainty: 2x2 covariance of the filtered position
    - last_sample_time: Previous accelerometer timestamp (None after reset)
    - last_rate_time: Previous gyroscope timestamp (None after reset)
    """

    position: np.ndarray = field(default_factory=lambda: np.zeros(2))
    velocity: np.ndarray = field(default_factory=lambda: np.zeros(2))
    predicted_position: np.ndarray = field(default_factory=lambda: np.zeros(2))
    raw_acceleration: np.ndarray = field(default_factory=lambda: np.zeros(3))
    raw_angular_rate: np.ndarray = field(default_factory=lambda: np.zeros(3))
    heading: float = 0.0
    position_uncertainty: np.ndarray = field(default_factory=lambda: np.eye(2))
    last_sample_time: Optional[float] = None
    last_rate_time: Optional[float] = None

    # Counters
    acceleration_samples: int = 0
    angular_rate_samples: int = 0
    rejected_samples: int = 0

    def snapshot(self, timestamp: Optional[float] = None, generation: int = 0) -> 'EstimatorSnapshot':
        """Build an immutable copy of the consumer-facing state."""
        return EstimatorSnapshot(
            position=_frozen_copy(self.position),
            heading=float(self.heading),
            raw_acceleration=_frozen_copy(self.raw_acceleration),
            raw_angular_rate=_frozen_copy(self.raw_angular_rate),
            position_uncertainty=_frozen_copy(self.position_uncertainty),
            velocity=_frozen_copy(self.velocity),
            acceleration_samples=self.acceleration_samples,
            angular_rate_samples=self.angular_rate_samples,
            timestamp=timestamp,
            generation=generation
        )

    def __str__(self) -> str:
        return (
            f"EstimatorState(pos=[{self.position[0]:.2f}, {self.position[1]:.2f}], "
            f"vel=[{self.velocity[0]:.2f}, {self.velocity[1]:.2f}], "
            f"heading={self.heading:.3f})"
        )

@dataclass(frozen=True, eq=False)
class EstimatorSnapshot:
    """
    Immutable view of the estimator published after each update.

    All arrays are read-only copies, so a snapshot can be handed to a
    rendering thread while the estimator keeps processing samples.
    """

    position: np.ndarray
    heading: float
    raw_acceleration: np.ndarray
    raw_angular_rate: np.ndarray
    position_uncertainty: np.ndarray
    velocity: np.ndarray
    acceleration_samples: int = 0
    angular_rate_samples: int = 0
    timestamp: Optional[float] = None
    # Number of resets before this snapshot was published
    generation: int = 0

    @property
    def x(self) -> float:
        return float(self.position[0])

    @property
    def y(self) -> float:
        return float(self.position[1])

    def as_dict(self) -> dict:
        """Plain-python representation for logging and external APIs."""
        return {
            'position': {'x': self.x, 'y': self.y},
            'heading': {'radians': self.heading, 'degrees': float(np.degrees(self.heading))},
            'raw_acceleration': self.raw_acceleration.tolist(),
            'raw_angular_rate': self.raw_angular_rate.tolist(),
            'uncertainty': np.sqrt(np.diag(self.position_uncertainty)).tolist(),
            'timestamp': self.timestamp
        }
