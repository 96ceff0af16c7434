#!/usr/bin/env python3
import sys
import os
import argparse
import numpy as np
import matplotlib.pyplot as plt

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from imu_tracker import InertialStateEstimator, EstimatorConfig, SensorSimulator, run_simulation
from imu_tracker.session import PROFILES

# ------------------------------------------
# Arguments
# ------------------------------------------
parser = argparse.ArgumentParser(description="Plot estimated vs truth trajectory for a simulated run")
parser.add_argument("--profile", choices=sorted(PROFILES), default="square")
parser.add_argument("--duration", type=float, default=12.0)
parser.add_argument("--accel-noise", type=float, default=0.0005)
parser.add_argument("--gyro-noise", type=float, default=0.001)
parser.add_argument("--gyro-bias", type=float, default=0.0)
parser.add_argument("--filter-mode", choices=["decoupled", "correlated"], default="decoupled")
parser.add_argument("--seed", type=int, default=0)
args = parser.parse_args()

# ------------------------------------------
# Run
# ------------------------------------------
estimator = InertialStateEstimator(EstimatorConfig(filter_mode=args.filter_mode))
sensor = SensorSimulator(accel_noise_std=args.accel_noise,
                         gyro_noise_std=args.gyro_noise,
                         gyro_bias=args.gyro_bias,
                         random_state=np.random.default_rng(args.seed))

result = run_simulation(estimator, sensor.generate_samples(PROFILES[args.profile](), args.duration))
print(f"Final position error: {result.final_error:.2f}")

# ------------------------------------------
# Plot
# ------------------------------------------
fig, (ax_xy, ax_h) = plt.subplots(1, 2, figsize=(12, 6))

ax_xy.plot(result.truth[:, 0], result.truth[:, 1], 'k--', label="Truth", linewidth=1)
ax_xy.plot(result.estimated[:, 0], result.estimated[:, 1], 'b-', label="Filtered estimate", linewidth=2)
ax_xy.set_xlabel("x")
ax_xy.set_ylabel("y")
ax_xy.set_title(f"Trajectory ({args.profile}, {args.filter_mode} filter)")
ax_xy.grid(True)
ax_xy.axis('equal')
ax_xy.legend()

ax_h.plot(result.times, np.degrees(result.headings), 'r-')
ax_h.set_xlabel("Time (s)")
ax_h.set_ylabel("Heading (deg)")
ax_h.set_title("Integrated heading")
ax_h.grid(True)

plt.tight_layout()
plt.show()


#Sample run command: python3 plot_trajectory.py --profile square --gyro-bias 0.01
