#!/usr/bin/env python3
"""
Tracking session: drives an InertialStateEstimator from a sensor source.

The accelerometer and gyroscope streams are delivered on separate threads,
the way a platform sensor API calls back from its own contexts. A third
thread reports status at a fixed rate.
"""

import argparse
import logging
import signal
import sys
import threading
import time
from collections import deque
from queue import Queue, Empty
from typing import Optional

import numpy as np

from .config import Config, FILTER_MODES
from .estimator import InertialStateEstimator
from .kalman import EstimatorSnapshot
from .sensors import simulator
from .sensors.simulator import SensorSimulator

logger = logging.getLogger(__name__)

PROFILES = {
    "square": simulator.square_path,
    "stationary": simulator.stationary,
    "turn": lambda: simulator.turn_in_place(0.5),
    "accelerate": lambda: simulator.constant_acceleration(0.001),
}

_STOP = object()

def configure_logging(level: str = "INFO", log_file: Optional[str] = None):
    """Configure root logging for the command line application."""
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=handlers,
        force=True
    )

class TrackingSession:
    """Runs the estimator against a simulated sensor source."""

    def __init__(self, config: Optional[Config] = None, profile: str = "square",
                 duration: float = 30.0, realtime: bool = True,
                 sensor: Optional[SensorSimulator] = None):
        """
        Initialize the tracking session.

        Args:
            config: Application configuration (defaults if None)
            profile: Motion profile name, one of PROFILES
            duration: Length of the simulated run in seconds
            realtime: Pace samples at the sensor rate; False runs as fast as possible
            sensor: Sensor simulator (built from the 'sensors' config if None)
        """
        if profile not in PROFILES:
            raise ValueError(f"Unknown profile: {profile}. Use one of {sorted(PROFILES)}")

        self.config = config or Config(config_file=None)
        self.profile = profile
        self.duration = duration
        self.realtime = realtime

        sensors = self.config.sensors
        self.sensor = sensor or SensorSimulator(
            rate_hz=self.config.accel_rate_hz,
            gyro_rate_hz=self.config.gyro_rate_hz,
            accel_noise_std=sensors.get("accel_noise_std", 0.0),
            gyro_noise_std=sensors.get("gyro_noise_std", 0.0),
            gyro_bias=sensors.get("gyro_bias", 0.0),
            position_scale=self.config.estimator_config().position_scale
        )

        # Estimator
        self.estimator = InertialStateEstimator(self.config.estimator_config())

        # Consumer-side path, appended on each position change
        self.path = deque(maxlen=self.config.path_history_size)
        self._path_lock = threading.Lock()
        self._path_generation = 0
        self.estimator.subscribe(self._on_position_changed)

        # Threading control
        self.stop_event = threading.Event()
        self.accel_queue = Queue()
        self.gyro_queue = Queue()
        self.source_thread = None
        self.accel_thread = None
        self.gyro_thread = None
        self.output_thread = None

        # Truth for the last generated tick
        self.truth_position = np.zeros(2)
        self.samples_generated = 0
        self.loop_errors = 0

        self.start_time = None

    @property
    def running(self) -> bool:
        return self.source_thread is not None and not self.stop_event.is_set()

    def _on_position_changed(self, snapshot: EstimatorSnapshot):
        with self._path_lock:
            # Drop updates that were in flight when the estimator was reset
            if snapshot.generation < self._path_generation:
                return
            if snapshot.generation > self._path_generation:
                self.path.clear()
                self._path_generation = snapshot.generation
            self.path.append(snapshot.position)

    def start(self) -> bool:
        """Start the sensor and output threads."""
        if self.running:
            logger.warning("Session already running")
            return False

        logger.info("Starting tracking session (profile=%s, duration=%.1fs, filter=%s)",
                    self.profile, self.duration, self.estimator.config.filter_mode)

        self.stop_event.clear()
        self.accel_queue = Queue()
        self.gyro_queue = Queue()
        self.samples_generated = 0
        self.start_time = time.monotonic()

        self.source_thread = threading.Thread(target=self._source_loop, name="sensor-source", daemon=True)
        self.accel_thread = threading.Thread(target=self._accel_loop, name="accelerometer", daemon=True)
        self.gyro_thread = threading.Thread(target=self._gyro_loop, name="gyroscope", daemon=True)
        self.output_thread = threading.Thread(target=self._output_loop, name="output", daemon=True)

        self.accel_thread.start()
        self.gyro_thread.start()
        self.output_thread.start()
        self.source_thread.start()

        return True

    def stop(self):
        """Stop all threads."""
        if self.source_thread is None:
            return

        logger.info("Stopping tracking session")
        self.stop_event.set()
        self.accel_queue.put(_STOP)
        self.gyro_queue.put(_STOP)

        for thread in (self.source_thread, self.accel_thread, self.gyro_thread, self.output_thread):
            if thread and thread.is_alive():
                thread.join(timeout=2.0)

        self.source_thread = None

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Wait until the sensor source is exhausted and both streams are drained.

        Returns:
            True if all samples were processed within the timeout
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        for thread in (self.source_thread, self.accel_thread, self.gyro_thread):
            if thread is None:
                continue
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            thread.join(timeout=remaining)
            if thread.is_alive():
                return False
        return True

    def reset(self):
        """Reset the estimator and restart the displayed path at the origin."""
        self.estimator.reset()

    def _source_loop(self):
        """Generate samples and hand each stream its own queue."""
        profile = PROFILES[self.profile]()
        base = time.monotonic()
        try:
            for t, accel, rate, truth in self.sensor.generate_samples(profile, self.duration, start_time=base):
                if self.stop_event.is_set():
                    break
                if self.realtime:
                    delay = t - time.monotonic()
                    if delay > 0 and self.stop_event.wait(delay):
                        break

                if rate is not None:
                    self.gyro_queue.put(rate)
                self.accel_queue.put(accel)
                self.truth_position = truth
                self.samples_generated += 1
        finally:
            self.gyro_queue.put(_STOP)
            self.accel_queue.put(_STOP)
            logger.debug("Sensor source finished after %d samples", self.samples_generated)

    def _stream_loop(self, stream: Queue, handler, name: str):
        while True:
            try:
                sample = stream.get(timeout=0.5)
            except Empty:
                if self.stop_event.is_set():
                    return
                continue

            if sample is _STOP:
                return

            try:
                handler(sample.x, sample.y, sample.z, sample.timestamp)
            except Exception:
                self.loop_errors += 1
                logger.exception("%s loop error", name)

    def _accel_loop(self):
        """Accelerometer stream processing loop."""
        self._stream_loop(self.accel_queue, self.estimator.on_acceleration_sample, "Accelerometer")

    def _gyro_loop(self):
        """Gyroscope stream processing loop."""
        self._stream_loop(self.gyro_queue, self.estimator.on_angular_rate_sample, "Gyroscope")

    def _output_loop(self):
        """Status reporting loop."""
        interval = 1.0 / self.config.output_rate_hz if self.config.output_rate_hz > 0 else 1.0
        while not self.stop_event.wait(interval):
            self._log_status()

    def _log_status(self):
        """Log current session status."""
        snapshot = self.estimator.snapshot()
        uptime = time.monotonic() - self.start_time if self.start_time else 0.0
        sigma = np.sqrt(np.diag(snapshot.position_uncertainty))
        logger.info("t=%.1fs pos=[%.2f, %.2f] heading=%.3f rad (%.1f deg) sigma=[%.3f, %.3f] "
                    "truth=[%.2f, %.2f] samples=%d/%d",
                    uptime, snapshot.x, snapshot.y, snapshot.heading, np.degrees(snapshot.heading),
                    sigma[0], sigma[1], self.truth_position[0], self.truth_position[1],
                    snapshot.acceleration_samples, snapshot.angular_rate_samples)

    def get_current_position(self) -> dict:
        """Get current position for external consumers."""
        snapshot = self.estimator.snapshot()
        result = snapshot.as_dict()
        result['truth'] = {'x': float(self.truth_position[0]), 'y': float(self.truth_position[1])}
        result['path_length'] = len(self.path)
        return result

def main(argv=None) -> int:
    """Command line entry point."""
    parser = argparse.ArgumentParser(description="Track 2D position and heading from simulated IMU samples")
    parser.add_argument("--config", default="config.json", help="Path to JSON configuration file")
    parser.add_argument("--duration", type=float, default=30.0, help="Simulated run length in seconds")
    parser.add_argument("--profile", choices=sorted(PROFILES), default="square", help="Motion profile")
    parser.add_argument("--filter-mode", choices=FILTER_MODES, default=None, help="Position filter variant")
    parser.add_argument("--log-level", default=None, help="Logging level (overrides config)")
    parser.add_argument("--fast", action="store_true", help="Do not pace samples in real time")
    args = parser.parse_args(argv)

    config = Config(args.config)
    if args.filter_mode:
        config.set("estimator.filter_mode", args.filter_mode)
    configure_logging(args.log_level or config.log_level, config.log_file)

    print("Inertial Tracker")
    print("=" * 50)

    session = TrackingSession(config, profile=args.profile, duration=args.duration,
                              realtime=not args.fast)

    def _signal_handler(signum, frame):
        logger.info("Shutdown signal received, stopping session...")
        session.stop()

    previous_handlers = {
        signum: signal.signal(signum, _signal_handler) for signum in (signal.SIGINT, signal.SIGTERM)
    }

    session.start()
    try:
        session.wait()
    finally:
        session.stop()
        for signum, handler in previous_handlers.items():
            signal.signal(signum, handler)

    stats = session.estimator.get_statistics()
    position = session.get_current_position()
    print("\n=== Final Statistics ===")
    print(f"Accelerometer samples: {stats['acceleration_samples']}")
    print(f"Gyroscope samples:     {stats['angular_rate_samples']}")
    print(f"Rejected samples:      {stats['rejected_samples']}")
    print(f"Final position: [{position['position']['x']:.2f}, {position['position']['y']:.2f}]")
    print(f"Truth position: [{position['truth']['x']:.2f}, {position['truth']['y']:.2f}]")
    print(f"Heading: {position['heading']['degrees']:.1f} deg")

    return 0

if __name__ == "__main__":
    sys.exit(main())
