"""
simulator.py

Synthetic inertial sample source for planar motion. A motion profile
describes the device-frame acceleration and yaw rate over time; the
simulator integrates the noise-free truth trajectory and emits noisy
accelerometer and gyroscope samples with a constant gyro bias.

Classes:
SensorSimulator:
    Generates timestamped samples and the matching truth positions.
SimulationResult:
    Arrays collected by run_simulation.
"""

from __future__ import annotations

import math
import numpy as np
from dataclasses import dataclass, field
from typing import Callable, Iterator, Optional, Tuple

from ..math.constants import HALF_PI, NOMINAL_SAMPLE_RATE_HZ, POSITION_SCALE
from ..math.utils import rotation_matrix
from .imu import AccelerationSample, AngularRateSample

# t -> (device-frame acceleration [ax, ay], yaw rate)
MotionProfile = Callable[[float], Tuple[np.ndarray, float]]

def stationary() -> MotionProfile:
    """Device at rest."""
    return lambda t: (np.zeros(2), 0.0)

def constant_acceleration(ax: float, ay: float = 0.0) -> MotionProfile:
    """Constant device-frame acceleration without rotation."""
    accel = np.array([ax, ay], dtype=float)
    return lambda t: (accel.copy(), 0.0)

def turn_in_place(yaw_rate: float) -> MotionProfile:
    """Constant rotation without translation."""
    return lambda t: (np.zeros(2), float(yaw_rate))

def square_path(accel: float = 0.002, leg_time: float = 2.0, turn_time: float = 1.0) -> MotionProfile:
    """
    Drive the sides of a square.

    Each leg accelerates forward (device x-axis) for half of ``leg_time`` and
    brakes for the other half, ending at rest; the device then turns 90
    degrees in place over ``turn_time`` before the next leg.
    """
    period = leg_time + turn_time
    turn_rate = HALF_PI / turn_time

    def profile(t: float) -> Tuple[np.ndarray, float]:
        phase = math.fmod(t, period)
        if phase < leg_time / 2:
            return np.array([accel, 0.0]), 0.0
        if phase < leg_time:
            return np.array([-accel, 0.0]), 0.0
        return np.zeros(2), turn_rate

    return profile

@dataclass
class SensorSimulator:
    """Simulate accelerometer and gyroscope samples from a motion profile.

    Parameters:
        rate_hz (float): Accelerometer sample rate in Hz; truth is stepped at this rate.
        gyro_rate_hz (Optional[float]): Gyroscope sample rate in Hz, at most rate_hz.
            If None, the gyroscope runs at rate_hz.
        accel_noise_std (float): Accelerometer white noise standard deviation (g).
        gyro_noise_std (float): Gyroscope white noise standard deviation (rad/s).
        gyro_bias (float): Constant z-axis gyro bias (rad/s).
        gravity_z (float): Reading of the z-axis accelerometer (g), ignored by the estimator.
        position_scale (float): Display units per g, must match the estimator.
        random_state (Optional[np.random.Generator]): Random number generator for
            reproducibility. If None, a new default generator is created.
    """
    rate_hz: float = NOMINAL_SAMPLE_RATE_HZ
    gyro_rate_hz: Optional[float] = None
    accel_noise_std: float = 0.0
    gyro_noise_std: float = 0.0
    gyro_bias: float = 0.0
    gravity_z: float = -1.0
    position_scale: float = POSITION_SCALE
    random_state: Optional[np.random.Generator] = field(default=None)

    def __post_init__(self):
        if self.rate_hz <= 0:
            raise ValueError("Sample rate must be positive")
        if self.gyro_rate_hz is None:
            self.gyro_rate_hz = self.rate_hz
        if not 0 < self.gyro_rate_hz <= self.rate_hz:
            raise ValueError("Gyroscope rate must be positive and not exceed the accelerometer rate")
        if self.random_state is None:
            self.rng = np.random.default_rng()
        else:
            self.rng = self.random_state
        self.dt: float = 1.0 / self.rate_hz
        self.gyro_dt: float = 1.0 / self.gyro_rate_hz

    def generate_samples(self, profile: MotionProfile, duration: float, start_time: float = 0.0
                         ) -> Iterator[Tuple[float, AccelerationSample, Optional[AngularRateSample], np.ndarray]]:
        """Generate samples for a motion profile.

        Truth is integrated at the accelerometer rate with the same Euler
        scheme the estimator uses: heading first, then world-frame velocity
        and position. A gyroscope sample is emitted on the first tick and
        then every ``gyro_dt`` seconds.

        Args:
            profile (MotionProfile): Device motion over time.
            duration (float): Length of the run in seconds.
            start_time (float): Timestamp of the first sample.

        Yields:
            (timestamp, accel sample, angular-rate sample or None, truth position [x, y])
        """
        steps = int(round(duration * self.rate_hz))
        yaw = 0.0
        velocity = np.zeros(2)
        position = np.zeros(2)
        gyro_timer = self.gyro_dt

        for k in range(steps):
            t = k * self.dt
            timestamp = start_time + t
            accel_device, yaw_rate = profile(t)
            accel_device = np.asarray(accel_device, dtype=float)

            # Truth
            yaw += yaw_rate * self.dt
            accel_world = rotation_matrix(yaw) @ accel_device
            velocity = velocity + accel_world * self.dt * self.position_scale
            position = position + velocity * self.dt

            # Measurements
            accel_meas = accel_device + self.rng.normal(scale=self.accel_noise_std, size=2) \
                if self.accel_noise_std > 0 else accel_device
            accel_sample = AccelerationSample(x=float(accel_meas[0]), y=float(accel_meas[1]),
                                              z=self.gravity_z, timestamp=timestamp)

            rate_sample = None
            if gyro_timer >= self.gyro_dt - 1e-9:
                gyro_timer -= self.gyro_dt
                rate_meas = yaw_rate + self.gyro_bias
                if self.gyro_noise_std > 0:
                    rate_meas += self.rng.normal(scale=self.gyro_noise_std)
                rate_sample = AngularRateSample(x=0.0, y=0.0, z=float(rate_meas), timestamp=timestamp)
            gyro_timer += self.dt

            yield timestamp, accel_sample, rate_sample, position.copy()

@dataclass
class SimulationResult:
    """Trajectories collected while driving an estimator."""
    times: np.ndarray
    truth: np.ndarray
    estimated: np.ndarray
    headings: np.ndarray

    @property
    def final_error(self) -> float:
        """Distance between final truth and final estimate."""
        if len(self.times) == 0:
            return 0.0
        return float(np.linalg.norm(self.truth[-1] - self.estimated[-1]))

def run_simulation(estimator, samples) -> SimulationResult:
    """Feed simulated samples to an estimator synchronously.

    On ticks that carry a gyro sample it is delivered before the
    accelerometer sample, so the rotation uses the heading of the same tick.

    Args:
        estimator: InertialStateEstimator to drive.
        samples: Iterable from SensorSimulator.generate_samples.

    Returns:
        SimulationResult with one row per tick.
    """
    times, truth, estimated, headings = [], [], [], []
    for timestamp, accel, rate, truth_position in samples:
        if rate is not None:
            estimator.on_angular_rate_sample(rate.x, rate.y, rate.z, rate.timestamp)
        estimator.on_acceleration_sample(accel.x, accel.y, accel.z, accel.timestamp)
        snapshot = estimator.snapshot()

        times.append(timestamp)
        truth.append(truth_position)
        estimated.append(snapshot.position)
        headings.append(snapshot.heading)

    return SimulationResult(
        times=np.asarray(times, dtype=float),
        truth=np.asarray(truth, dtype=float).reshape(-1, 2),
        estimated=np.asarray(estimated, dtype=float).reshape(-1, 2),
        headings=np.asarray(headings, dtype=float)
    )
