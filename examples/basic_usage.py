#!/usr/bin/env python3
"""
Basic usage example of the inertial tracker.

This example feeds simulated accelerometer and gyroscope samples to the
estimator synchronously and prints the tracked position as it goes.
"""

import sys
import os
import numpy as np

# Add package to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from imu_tracker import InertialStateEstimator, EstimatorConfig, SensorSimulator
from imu_tracker.sensors.simulator import square_path

def print_status(estimator: InertialStateEstimator, timestamp: float, truth: np.ndarray):
    """Print current estimator status."""
    snapshot = estimator.snapshot()
    sigma = np.sqrt(np.diag(snapshot.position_uncertainty))

    print(f"Time: {timestamp:.1f}s")
    print(f"  Position: [{snapshot.x:7.2f}, {snapshot.y:7.2f}]")
    print(f"  Truth:    [{truth[0]:7.2f}, {truth[1]:7.2f}]")
    print(f"  Heading:  {snapshot.heading:6.3f} rad ({np.degrees(snapshot.heading):6.1f}°)")
    print(f"  Uncertainty: [{sigma[0]:.3f}, {sigma[1]:.3f}]")
    print()

def main():
    """Main example function."""
    print("Inertial Tracker - Basic Usage Example")
    print("=" * 50)

    estimator = InertialStateEstimator(EstimatorConfig())
    sensor = SensorSimulator(accel_noise_std=0.0005, gyro_noise_std=0.001,
                             random_state=np.random.default_rng(42))

    print("Starting simulation (square path, 12 seconds)...")
    print()

    last_print_time = -np.inf
    print_interval = 2.0

    for timestamp, accel, rate, truth in sensor.generate_samples(square_path(), duration=12.0):
        if rate is not None:
            estimator.on_angular_rate_sample(rate.x, rate.y, rate.z, rate.timestamp)
        estimator.on_acceleration_sample(accel.x, accel.y, accel.z, accel.timestamp)

        if estimator.consume_position_changed() and timestamp - last_print_time >= print_interval:
            print_status(estimator, timestamp, truth)
            last_print_time = timestamp

    stats = estimator.get_statistics()
    print("=== Final Statistics ===")
    print(f"Accelerometer samples: {stats['acceleration_samples']}")
    print(f"Gyroscope samples: {stats['angular_rate_samples']}")
    print(f"Filter gain: {stats['filter']['gain']}")

    print("\nResetting estimator...")
    estimator.reset()
    print(f"Position after reset: {estimator.position.tolist()}, heading: {estimator.heading}")

if __name__ == "__main__":
    main()
