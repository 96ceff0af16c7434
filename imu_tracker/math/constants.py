"""
Mathematical constants and default tuning values for inertial tracking.
"""

import math

# Mathematical constants
TWO_PI = 2 * math.pi
HALF_PI = math.pi / 2

# Sensor cadence
NOMINAL_SAMPLE_RATE_HZ = 60.0                        # Target sensor cadence
NOMINAL_SAMPLE_PERIOD_S = 1.0 / NOMINAL_SAMPLE_RATE_HZ

# Integration tuning
HEADING_SENSITIVITY = 1.0    # Gyro z-rate gain (rad per rad/s per s)
POSITION_SCALE = 500.0       # Acceleration (g) to display units

# Position filter noise
PROCESS_NOISE = 0.01         # Uncertainty added per update
MEASUREMENT_NOISE = 0.1      # Noise of the dead-reckoned measurement
INITIAL_POSITION_UNCERTAINTY = 1.0

# Lower bound for the innovation variance (gain denominator)
MIN_INNOVATION_VARIANCE = 1e-12
