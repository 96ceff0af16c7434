"""
Orientation and motion integration models for the inertial estimator.
"""

import numpy as np
from typing import Tuple
from ..math.utils import wrap_heading

class OrientationModel:
    """
    First-order (Euler) heading integrator.

    Heading is not filtered: gyro noise and bias accumulate into the
    heading, exactly as integrated.
    """

    @staticmethod
    def advance_heading(heading: float, rate_z: float, dt: float,
                        sensitivity: float = 1.0) -> float:
        """
        Advance heading by one angular-rate sample.

        Args:
            heading: Current heading in radians
            rate_z: Angular rate about the z-axis (rad/s)
            dt: Time step in seconds
            sensitivity: Gyro gain

        Returns:
            New heading wrapped into (-2*pi, 2*pi)
        """
        return wrap_heading(heading + rate_z * dt * sensitivity)

class MotionModel:
    """
    Dead-reckoning integrator for world-frame acceleration.

    State: position [x, y], velocity [vx, vy]
    """

    @staticmethod
    def integrate(position: np.ndarray, velocity: np.ndarray, accel_world: np.ndarray,
                  dt: float, position_scale: float = 1.0) -> Tuple[np.ndarray, np.ndarray]:
        """
        Integrate one acceleration sample into velocity and a predicted position.

        Args:
            position: Current filtered position [x, y]
            velocity: Current velocity [vx, vy]
            accel_world: World-frame acceleration [ax, ay]
            dt: Time step in seconds
            position_scale: Acceleration to position unit conversion

        Returns:
            (new velocity, predicted position)
        """
        position = np.asarray(position, dtype=float)
        velocity = np.asarray(velocity, dtype=float)
        accel_world = np.asarray(accel_world, dtype=float)

        # Velocity update
        velocity_new = velocity + accel_world * dt * position_scale

        # Position update (uses the updated velocity)
        predicted = position + velocity_new * dt

        return velocity_new, predicted
