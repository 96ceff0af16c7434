"""
Inertial sample types, sample clock and simulated sample source.
"""

from .imu import AccelerationSample, AngularRateSample, SampleClock
from .simulator import SensorSimulator, SimulationResult, run_simulation

__all__ = ["AccelerationSample", "AngularRateSample", "SampleClock",
           "SensorSimulator", "SimulationResult", "run_simulation"]
