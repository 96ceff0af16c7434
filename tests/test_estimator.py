#!/usr/bin/env python3
"""
Unit tests for the inertial state estimator.
"""

import math
import threading
import unittest
import numpy as np
import sys
import os

# Add package to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from imu_tracker import InertialStateEstimator, EstimatorConfig, FilterDivergenceError, SensorSimulator, run_simulation
from imu_tracker.math.constants import TWO_PI
from imu_tracker.sensors.simulator import square_path

DT = 1.0 / 60.0

class TestEstimatorInitialState(unittest.TestCase):

    def test_zero_initialized(self):
        """Reads before any sample return the creation state."""
        estimator = InertialStateEstimator()

        np.testing.assert_array_equal(estimator.position, [0.0, 0.0])
        self.assertEqual(estimator.heading, 0.0)
        np.testing.assert_array_equal(estimator.raw_acceleration, [0.0, 0.0, 0.0])
        np.testing.assert_array_equal(estimator.raw_angular_rate, [0.0, 0.0, 0.0])
        np.testing.assert_array_equal(estimator.position_uncertainty, np.eye(2))
        self.assertFalse(estimator.consume_position_changed())

    def test_invalid_config(self):
        with self.assertRaises(ValueError):
            InertialStateEstimator(EstimatorConfig(nominal_sample_period=0.0))

class TestEndToEnd(unittest.TestCase):
    """First accelerometer tick from reset, heading zero."""

    def setUp(self):
        self.config = EstimatorConfig()
        self.estimator = InertialStateEstimator(self.config)
        self.estimator.reset()

    def test_first_sample(self):
        q = self.config.process_noise
        r = self.config.measurement_noise
        scale = self.config.position_scale

        self.estimator.on_acceleration_sample(1.0, 0.0, 0.0, timestamp=0.0)
        state = self.estimator.state_copy()

        expected_velocity = 1.0 * DT * scale
        expected_predicted = expected_velocity * DT
        gain = (1.0 + q) / (1.0 + q + r)

        self.assertAlmostEqual(state.velocity[0], expected_velocity)
        self.assertAlmostEqual(state.velocity[1], 0.0)
        self.assertAlmostEqual(state.predicted_position[0], expected_predicted)
        self.assertAlmostEqual(self.estimator.position[0], gain * expected_predicted)
        self.assertAlmostEqual(self.estimator.position[1], 0.0)
        np.testing.assert_array_almost_equal(self.estimator.last_gain, [gain, gain])
        np.testing.assert_array_equal(self.estimator.raw_acceleration, [1.0, 0.0, 0.0])
        self.assertEqual(state.last_sample_time, 0.0)

    def test_second_sample_uses_elapsed_time(self):
        self.estimator.on_acceleration_sample(1.0, 0.0, 0.0, timestamp=0.0)
        self.estimator.on_acceleration_sample(1.0, 0.0, 0.0, timestamp=0.1)
        state = self.estimator.state_copy()

        self.assertAlmostEqual(state.velocity[0], (DT + 0.1) * self.config.position_scale)

class TestFrameRotation(unittest.TestCase):

    def test_rotated_acceleration(self):
        """After a quarter turn, device x acceleration drives world y velocity."""
        estimator = InertialStateEstimator()
        estimator.on_angular_rate_sample(0.0, 0.0, (math.pi / 2) / DT, timestamp=0.0)
        self.assertAlmostEqual(estimator.heading, math.pi / 2)

        estimator.on_acceleration_sample(1.0, 0.0, 0.0, timestamp=0.0)
        velocity = estimator.state_copy().velocity

        self.assertAlmostEqual(velocity[0], 0.0)
        self.assertAlmostEqual(velocity[1], DT * EstimatorConfig().position_scale)
        self.assertAlmostEqual(estimator.position[0], 0.0)
        self.assertGreater(estimator.position[1], 0.0)

    def test_heading_read_at_processing_time(self):
        """The rotation uses whatever heading is current, regardless of stream order."""
        estimator = InertialStateEstimator()
        estimator.on_acceleration_sample(1.0, 0.0, 0.0, timestamp=0.0)
        estimator.on_angular_rate_sample(0.0, 0.0, math.pi / DT, timestamp=0.0)

        # Acceleration came first, so it was integrated with heading 0
        velocity = estimator.state_copy().velocity
        self.assertGreater(velocity[0], 0.0)
        self.assertAlmostEqual(velocity[1], 0.0)
        self.assertAlmostEqual(estimator.heading, math.pi)

class TestHeading(unittest.TestCase):

    def test_integration_with_sensitivity(self):
        estimator = InertialStateEstimator(EstimatorConfig(sensitivity=0.5))
        estimator.on_angular_rate_sample(0.0, 0.0, 1.0, timestamp=0.0)
        estimator.on_angular_rate_sample(0.0, 0.0, 1.0, timestamp=1.0)

        self.assertAlmostEqual(estimator.heading, 0.5 * DT + 0.5)

    def test_heading_normalization(self):
        """Heading stays inside (-2pi, 2pi) for any rate sequence."""
        estimator = InertialStateEstimator()
        rng = np.random.default_rng(11)
        t = 0.0
        for rate in rng.uniform(-200.0, 200.0, size=1000):
            t += DT
            estimator.on_angular_rate_sample(0.0, 0.0, rate, timestamp=t)
            self.assertGreater(estimator.heading, -TWO_PI)
            self.assertLess(estimator.heading, TWO_PI)

    def test_raw_angular_rate_published(self):
        estimator = InertialStateEstimator()
        estimator.on_angular_rate_sample(0.1, -0.2, 0.3, timestamp=0.0)
        np.testing.assert_array_equal(estimator.raw_angular_rate, [0.1, -0.2, 0.3])

    def test_gyro_bias_drifts_heading(self):
        """Heading is not filtered: a constant bias accumulates."""
        estimator = InertialStateEstimator()
        for k in range(600):
            estimator.on_angular_rate_sample(0.0, 0.0, 0.01, timestamp=k * DT)
        self.assertAlmostEqual(estimator.heading, 0.01 * 600 * DT, places=6)

class TestZeroInput(unittest.TestCase):

    def test_stability(self):
        estimator = InertialStateEstimator()
        for k in range(1000):
            t = k * DT
            estimator.on_angular_rate_sample(0.0, 0.0, 0.0, timestamp=t)
            estimator.on_acceleration_sample(0.0, 0.0, 0.0, timestamp=t)

        np.testing.assert_array_almost_equal(estimator.position, [0.0, 0.0])
        self.assertAlmostEqual(estimator.heading, 0.0)
        # Uncertainty settles to a finite positive floor
        self.assertTrue(np.all(np.isfinite(estimator.position_uncertainty)))
        self.assertTrue(np.all(np.diag(estimator.position_uncertainty) > 0.0))

class TestReset(unittest.TestCase):

    def setUp(self):
        self.estimator = InertialStateEstimator()
        sim = SensorSimulator(random_state=np.random.default_rng(0), accel_noise_std=0.001, gyro_noise_std=0.01)
        run_simulation(self.estimator, sim.generate_samples(square_path(), duration=4.0))

    def test_reset_restores_creation_state(self):
        self.assertNotEqual(self.estimator.heading, 0.0)

        self.estimator.reset()
        state = self.estimator.state_copy()

        np.testing.assert_array_equal(self.estimator.position, [0.0, 0.0])
        self.assertEqual(self.estimator.heading, 0.0)
        np.testing.assert_array_equal(state.velocity, [0.0, 0.0])
        np.testing.assert_array_equal(self.estimator.position_uncertainty, np.eye(2))
        self.assertIsNone(state.last_sample_time)
        self.assertIsNone(state.last_rate_time)

    def test_reset_advances_snapshot_generation(self):
        before = self.estimator.snapshot()
        self.estimator.reset()
        after = self.estimator.snapshot()

        self.assertEqual(before.generation, 0)
        self.assertEqual(after.generation, 1)
        self.assertEqual(self.estimator.get_statistics()['resets'], 1)

        self.estimator.on_acceleration_sample(0.001, 0.0, -1.0, timestamp=1.0)
        self.assertEqual(self.estimator.snapshot().generation, 1)

    def test_reset_is_idempotent(self):
        self.estimator.reset()
        once = self.estimator.state_copy()
        self.estimator.reset()
        twice = self.estimator.state_copy()

        np.testing.assert_array_equal(once.position, twice.position)
        np.testing.assert_array_equal(once.velocity, twice.velocity)
        np.testing.assert_array_equal(once.position_uncertainty, twice.position_uncertainty)
        self.assertEqual(once.heading, twice.heading)
        self.assertEqual(once.last_sample_time, twice.last_sample_time)

    def test_next_sample_uses_default_step(self):
        """After reset the next sample behaves like the first one ever received."""
        self.estimator.reset()
        self.estimator.on_acceleration_sample(1.0, 0.0, 0.0, timestamp=1000.0)

        fresh = InertialStateEstimator()
        fresh.on_acceleration_sample(1.0, 0.0, 0.0, timestamp=5.0)

        np.testing.assert_array_almost_equal(self.estimator.position, fresh.position)
        np.testing.assert_array_almost_equal(self.estimator.state_copy().velocity, fresh.state_copy().velocity)

    def test_reset_logged_and_counted(self):
        with self.assertLogs('imu_tracker.estimator', level='INFO'):
            self.estimator.reset()
        self.assertEqual(self.estimator.get_statistics()['resets'], 1)

class TestErrorHandling(unittest.TestCase):

    def setUp(self):
        self.estimator = InertialStateEstimator()

    def test_backwards_timestamp(self):
        self.estimator.on_acceleration_sample(1.0, 0.0, 0.0, timestamp=1.0)
        with self.assertLogs('imu_tracker.sensors.imu', level='WARNING'):
            self.estimator.on_acceleration_sample(1.0, 0.0, 0.0, timestamp=0.5)

        velocity = self.estimator.state_copy().velocity
        self.assertAlmostEqual(velocity[0], 2 * DT * EstimatorConfig().position_scale)
        self.assertEqual(self.estimator.get_statistics()['clamped_intervals'], 1)

    def test_non_finite_sample_rejected(self):
        self.estimator.on_acceleration_sample(1.0, 0.0, 0.0, timestamp=0.0)
        self.estimator.consume_position_changed()
        before = self.estimator.position.copy()

        with self.assertLogs('imu_tracker.estimator', level='WARNING'):
            self.estimator.on_acceleration_sample(float('nan'), 0.0, 0.0, timestamp=DT)
            self.estimator.on_angular_rate_sample(0.0, 0.0, float('inf'), timestamp=DT)

        np.testing.assert_array_equal(self.estimator.position, before)
        self.assertEqual(self.estimator.heading, 0.0)
        self.assertFalse(self.estimator.consume_position_changed())
        self.assertEqual(self.estimator.get_statistics()['rejected_samples'], 2)

    def test_divergence_leaves_state_untouched(self):
        """An overflowing integration raises instead of publishing a non-finite position."""
        with np.errstate(over='ignore', invalid='ignore'):
            with self.assertRaises(FilterDivergenceError):
                self.estimator.on_acceleration_sample(1e308, 0.0, 0.0, timestamp=0.0)

        state = self.estimator.state_copy()
        np.testing.assert_array_equal(self.estimator.position, [0.0, 0.0])
        np.testing.assert_array_equal(state.velocity, [0.0, 0.0])
        self.assertIsNone(state.last_sample_time)
        self.assertTrue(np.all(np.isfinite(self.estimator.position_uncertainty)))

class TestChangeNotification(unittest.TestCase):

    def setUp(self):
        self.estimator = InertialStateEstimator()

    def test_edge_signal(self):
        self.estimator.on_acceleration_sample(0.1, 0.0, 0.0, timestamp=0.0)
        self.assertTrue(self.estimator.consume_position_changed())
        self.assertFalse(self.estimator.consume_position_changed())

        self.estimator.on_angular_rate_sample(0.0, 0.0, 1.0, timestamp=0.0)
        self.assertFalse(self.estimator.consume_position_changed())

        self.estimator.reset()
        self.assertTrue(self.estimator.consume_position_changed())

    def test_every_position_change_is_signalled(self):
        sim = SensorSimulator(random_state=np.random.default_rng(2), accel_noise_std=0.001)
        last = self.estimator.position
        for _, accel, rate, _ in sim.generate_samples(square_path(), duration=2.0):
            self.estimator.on_angular_rate_sample(rate.x, rate.y, rate.z, rate.timestamp)
            self.estimator.on_acceleration_sample(accel.x, accel.y, accel.z, accel.timestamp)
            changed = self.estimator.consume_position_changed()
            if not np.array_equal(self.estimator.position, last):
                self.assertTrue(changed)
            last = self.estimator.position

    def test_subscribers(self):
        received = []
        self.estimator.subscribe(received.append)

        self.estimator.on_acceleration_sample(0.1, 0.0, 0.0, timestamp=0.0)
        self.estimator.on_angular_rate_sample(0.0, 0.0, 1.0, timestamp=0.0)
        self.estimator.reset()

        self.assertEqual(len(received), 2)
        self.assertGreater(received[0].x, 0.0)
        self.assertEqual(received[1].x, 0.0)

        self.estimator.unsubscribe(received.append)
        self.estimator.on_acceleration_sample(0.1, 0.0, 0.0, timestamp=0.0)
        self.assertEqual(len(received), 2)

class TestSnapshots(unittest.TestCase):

    def test_snapshot_not_mutated_by_later_samples(self):
        estimator = InertialStateEstimator()
        estimator.on_acceleration_sample(1.0, 0.0, 0.0, timestamp=0.0)
        first = estimator.snapshot()
        x = first.x

        estimator.on_acceleration_sample(1.0, 0.0, 0.0, timestamp=DT)

        self.assertEqual(first.x, x)
        self.assertGreater(estimator.snapshot().x, x)
        with self.assertRaises(ValueError):
            first.position[0] = 0.0

    def test_snapshot_counters(self):
        estimator = InertialStateEstimator()
        estimator.on_acceleration_sample(0.0, 0.0, 0.0, timestamp=0.0)
        estimator.on_angular_rate_sample(0.0, 0.0, 0.0, timestamp=0.0)
        estimator.on_angular_rate_sample(0.0, 0.0, 0.0, timestamp=DT)

        snapshot = estimator.snapshot()
        self.assertEqual(snapshot.acceleration_samples, 1)
        self.assertEqual(snapshot.angular_rate_samples, 2)
        self.assertEqual(snapshot.timestamp, DT)

class TestFilterModes(unittest.TestCase):

    def test_correlated_mode_matches_decoupled(self):
        """With diagonal noise both filters produce the same trajectory."""
        results = []
        for mode in ("decoupled", "correlated"):
            estimator = InertialStateEstimator(EstimatorConfig(filter_mode=mode))
            sim = SensorSimulator(random_state=np.random.default_rng(4), accel_noise_std=0.001, gyro_noise_std=0.01)
            results.append(run_simulation(estimator, sim.generate_samples(square_path(), duration=6.0)))

        np.testing.assert_allclose(results[0].estimated, results[1].estimated, rtol=1e-9, atol=1e-9)

class TestConcurrency(unittest.TestCase):

    def test_two_streams_and_reader(self):
        """Concurrent streams are serialized and readers only see whole snapshots."""
        estimator = InertialStateEstimator()
        n = 2000
        errors = []
        stop = threading.Event()

        def accel_stream():
            for k in range(n):
                estimator.on_acceleration_sample(0.001, -0.001, 0.0, timestamp=k * DT)

        def gyro_stream():
            for k in range(n):
                estimator.on_angular_rate_sample(0.0, 0.0, 0.3, timestamp=k * DT)

        def reader():
            last_count = 0
            while not stop.is_set():
                snapshot = estimator.snapshot()
                if snapshot.acceleration_samples < last_count:
                    errors.append("sample count went backwards")
                if not np.all(np.isfinite(snapshot.position)):
                    errors.append("non-finite position")
                last_count = snapshot.acceleration_samples

        threads = [threading.Thread(target=accel_stream), threading.Thread(target=gyro_stream)]
        reader_thread = threading.Thread(target=reader)
        reader_thread.start()
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30.0)
        stop.set()
        reader_thread.join(timeout=5.0)

        self.assertEqual(errors, [])
        snapshot = estimator.snapshot()
        self.assertEqual(snapshot.acceleration_samples, n)
        self.assertEqual(snapshot.angular_rate_samples, n)
        self.assertAlmostEqual(snapshot.heading, math.fmod(0.3 * n * DT, TWO_PI), places=6)
        self.assertTrue(np.all(np.isfinite(snapshot.position_uncertainty)))

if __name__ == '__main__':
    unittest.main()
