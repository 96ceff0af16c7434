"""
Inertial state estimator: heading and filtered 2D position from IMU samples.
"""

import logging
import threading
import time
import numpy as np
from typing import Any, Callable, Dict, List, Optional

from .config import EstimatorConfig
from .kalman import EstimatorState, EstimatorSnapshot, FilterDivergenceError, \
    MotionModel, OrientationModel, make_position_filter
from .math.utils import rotate_vector, is_finite_vector
from .sensors.imu import SampleClock

logger = logging.getLogger(__name__)

SnapshotListener = Callable[[EstimatorSnapshot], None]

class InertialStateEstimator:
    """
    Estimates heading and a smoothed 2D position from accelerometer and
    gyroscope streams.

    Each stream may call in from its own thread. Every mutation happens under
    one lock, and consumers read an immutable snapshot that is replaced as a
    whole after each update, so reads never block and never see a partial
    update.
    """

    def __init__(self, config: Optional[EstimatorConfig] = None):
        """
        Initialize the estimator.

        Args:
            config: Estimator tunables (defaults if None)
        """
        self.config = (config or EstimatorConfig()).validate()

        self._lock = threading.Lock()
        self._filter = make_position_filter(
            self.config.filter_mode,
            process_noise=self.config.process_noise,
            measurement_noise=self.config.measurement_noise,
            initial_uncertainty=self.config.initial_uncertainty
        )
        self._accel_clock = SampleClock(self.config.nominal_sample_period, name="accelerometer")
        self._rate_clock = SampleClock(self.config.nominal_sample_period, name="gyroscope")

        self._state = self._initial_state()
        self._snapshot = self._state.snapshot()
        self._position_changed = False
        self._listeners: List[SnapshotListener] = []

        self.reset_count = 0

    def _initial_state(self) -> EstimatorState:
        state = EstimatorState()
        state.position_uncertainty = self._filter.covariance
        return state

    # ------------------------------------------------------------------
    # Sample intake
    # ------------------------------------------------------------------

    def on_acceleration_sample(self, x: float, y: float, z: float,
                               timestamp: Optional[float] = None) -> None:
        """
        Process one accelerometer sample (device frame).

        The sample is rotated into the world frame with the heading current
        at this moment, integrated into velocity and a predicted position,
        and the prediction is fused by the position filter.

        Raises:
            FilterDivergenceError: If the filter produced a non-finite
                estimate; the state is left as it was before the sample.
        """
        raw = np.array([x, y, z], dtype=float)
        if timestamp is None:
            timestamp = time.monotonic()

        with self._lock:
            if not self._accept(raw, timestamp, "acceleration"):
                return

            state = self._state
            previous_time = self._accel_clock.last_time
            dt = self._accel_clock.tick(timestamp)

            accel_world = rotate_vector(raw, state.heading)
            velocity, predicted = MotionModel.integrate(
                state.position, state.velocity, accel_world, dt, self.config.position_scale)

            try:
                position = self._filter.update(predicted)
            except FilterDivergenceError:
                self._accel_clock.last_time = previous_time
                raise

            state.raw_acceleration = raw
            state.velocity = velocity
            state.predicted_position = predicted
            state.position = position
            state.position_uncertainty = self._filter.covariance
            state.last_sample_time = timestamp
            state.acceleration_samples += 1

            snapshot = self._publish(timestamp)
            self._position_changed = True
            listeners = list(self._listeners)

        self._notify(listeners, snapshot)

    def on_angular_rate_sample(self, x: float, y: float, z: float,
                               timestamp: Optional[float] = None) -> None:
        """
        Process one gyroscope sample (rad/s, device frame).

        Only the z-axis rate advances the heading; all three axes are
        published for display.
        """
        raw = np.array([x, y, z], dtype=float)
        if timestamp is None:
            timestamp = time.monotonic()

        with self._lock:
            if not self._accept(raw, timestamp, "angular rate"):
                return

            state = self._state
            dt = self._rate_clock.tick(timestamp)

            state.raw_angular_rate = raw
            state.heading = OrientationModel.advance_heading(
                state.heading, raw[2], dt, self.config.sensitivity)
            state.last_rate_time = timestamp
            state.angular_rate_samples += 1

            self._publish(timestamp)

    def _accept(self, raw: np.ndarray, timestamp: float, kind: str) -> bool:
        """Reject samples with non-finite values. Caller holds the lock."""
        if is_finite_vector(raw) and np.isfinite(timestamp):
            return True
        self._state.rejected_samples += 1
        logger.warning("Rejected %s sample with non-finite values: %s at t=%s",
                       kind, raw.tolist(), timestamp)
        return False

    def _publish(self, timestamp: Optional[float]) -> EstimatorSnapshot:
        """Replace the published snapshot. Caller holds the lock."""
        self._snapshot = self._state.snapshot(timestamp, self.reset_count)
        return self._snapshot

    def _notify(self, listeners: List[SnapshotListener], snapshot: EstimatorSnapshot):
        for listener in listeners:
            listener(snapshot)

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    def reset(self) -> None:
        """
        Return to the creation state: zero position, velocity and heading,
        identity uncertainty, and no previous sample times.
        """
        with self._lock:
            self._filter.reset()
            self._accel_clock.reset()
            self._rate_clock.reset()
            self._state = self._initial_state()
            self.reset_count += 1
            snapshot = self._publish(None)
            self._position_changed = True
            listeners = list(self._listeners)

        logger.info("Estimator reset")
        self._notify(listeners, snapshot)

    # ------------------------------------------------------------------
    # Consumer interface
    # ------------------------------------------------------------------

    def snapshot(self) -> EstimatorSnapshot:
        """Latest fully-processed state."""
        return self._snapshot

    @property
    def position(self) -> np.ndarray:
        return self._snapshot.position

    @property
    def heading(self) -> float:
        return self._snapshot.heading

    @property
    def raw_acceleration(self) -> np.ndarray:
        return self._snapshot.raw_acceleration

    @property
    def raw_angular_rate(self) -> np.ndarray:
        return self._snapshot.raw_angular_rate

    @property
    def position_uncertainty(self) -> np.ndarray:
        return self._snapshot.position_uncertainty

    @property
    def last_gain(self) -> np.ndarray:
        """Kalman gain of the most recent position update."""
        with self._lock:
            return np.array(self._filter.last_gain, copy=True)

    def consume_position_changed(self) -> bool:
        """
        Report whether the position may have changed since the last call.

        Set by every accelerometer update and every reset, so a real change
        is never missed; a True with an unchanged position is possible.
        """
        with self._lock:
            changed = self._position_changed
            self._position_changed = False
        return changed

    def subscribe(self, listener: SnapshotListener) -> None:
        """Call ``listener(snapshot)`` after every position update or reset."""
        with self._lock:
            self._listeners.append(listener)

    def unsubscribe(self, listener: SnapshotListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def state_copy(self) -> EstimatorState:
        """Copy of the full internal state, including velocity."""
        with self._lock:
            s = self._state
            return EstimatorState(
                position=s.position.copy(),
                velocity=s.velocity.copy(),
                predicted_position=s.predicted_position.copy(),
                raw_acceleration=s.raw_acceleration.copy(),
                raw_angular_rate=s.raw_angular_rate.copy(),
                heading=s.heading,
                position_uncertainty=s.position_uncertainty.copy(),
                last_sample_time=s.last_sample_time,
                last_rate_time=s.last_rate_time,
                acceleration_samples=s.acceleration_samples,
                angular_rate_samples=s.angular_rate_samples,
                rejected_samples=s.rejected_samples
            )

    def get_statistics(self) -> Dict[str, Any]:
        """Get estimator statistics."""
        with self._lock:
            return {
                'acceleration_samples': self._state.acceleration_samples,
                'angular_rate_samples': self._state.angular_rate_samples,
                'rejected_samples': self._state.rejected_samples,
                'clamped_intervals': self._accel_clock.clamped_count + self._rate_clock.clamped_count,
                'resets': self.reset_count,
                'filter': self._filter.get_statistics()
            }
