from dataclasses import dataclass
from typing import List, Literal, Optional, Sequence

import numpy as np

from ctrv_tracking.dataset.measurement_package import LidarMeasurement, RadarMeasurement, Measurement
from ctrv_tracking.dataset.random_gen import random_generator
from ctrv_tracking.filters.ctrv_model import ctrv_transition
from ctrv_tracking.filters.measurement_models import h_radar
from ctrv_tracking.filters.sigma_points import normalize_angle


@dataclass
class CTRVState:
    """State information for CTRV trajectory generation."""
    position: np.ndarray  # [x, y]
    speed: float
    yaw: float
    yaw_rate: float = 0.0

    def __post_init__(self):
        self.position = np.asarray(self.position, dtype=float)
        if self.position.shape != (2,):
            raise ValueError(f"position must be [x, y], got shape {self.position.shape}")
        self.speed = float(self.speed)
        self.yaw = float(self.yaw)
        self.yaw_rate = float(self.yaw_rate)

    def as_vector(self) -> np.ndarray:
        return np.array([self.position[0], self.position[1], self.speed, self.yaw, self.yaw_rate])


def generate_ctrv_trajectory(
        T: int,
        dt: float,
        initial_state: CTRVState,
        accel_noise_std: float = 0.0,
        yaw_accel_noise_std: float = 0.0,
        rng: Optional[np.random.Generator] = None,
) -> np.ndarray:
    """
    Generate a CTRV ground-truth trajectory driven by random longitudinal and yaw accelerations.

    Args:
        T: Number of time steps
        dt: Time step duration [s]
        initial_state: State at t = 0
        accel_noise_std: Std of the longitudinal acceleration drawn every step [m/s^2]
        yaw_accel_noise_std: Std of the yaw acceleration drawn every step [rad/s^2]
        rng: Generator to draw from, defaults to the shared random_generator

    Returns:
        (T, 5) array of states [px, py, v, yaw, yaw_rate]
    """
    if T < 1:
        raise ValueError("T must be at least 1")
    if dt <= 0:
        raise ValueError("dt must be positive")
    rng = rng if rng is not None else random_generator.get_rng()

    truth = np.empty((T, 5), dtype=float)
    truth[0] = initial_state.as_vector()
    for t in range(1, T):
        nu_a = rng.normal(0.0, accel_noise_std) if accel_noise_std > 0 else 0.0
        nu_yawdd = rng.normal(0.0, yaw_accel_noise_std) if yaw_accel_noise_std > 0 else 0.0
        truth[t] = ctrv_transition(np.concatenate([truth[t - 1], [nu_a, nu_yawdd]]), dt)
    return truth


def generate_measurements(
        truth: np.ndarray,
        timestamps: Sequence[int],
        lidar_noise_std: Sequence[float] = (0.15, 0.15),
        radar_noise_std: Sequence[float] = (0.3, 0.03, 0.3),
        pattern: Literal["alternate", "lidar", "radar"] = "alternate",
        rng: Optional[np.random.Generator] = None,
) -> List[Measurement]:
    """
    Builds noisy sensor readings of a ground-truth trajectory.

    Args:
        truth: (T, 5) states [px, py, v, yaw, yaw_rate]
        timestamps: T integer timestamps in microseconds
        lidar_noise_std: (std_px, std_py)
        radar_noise_std: (std_rho, std_phi, std_rho_dot)
        pattern: "alternate" starts with lidar and switches sensor every step,
                 "lidar" / "radar" use a single sensor
        rng: Generator to draw from, defaults to the shared random_generator

    Returns:
        List of T measurements
    """
    truth = np.asarray(truth, dtype=float)
    timestamps = np.asarray(timestamps, dtype=np.int64)
    if truth.ndim != 2 or truth.shape[1] != 5:
        raise ValueError(f"truth must be (T, 5), got {truth.shape}")
    if timestamps.shape != (truth.shape[0],):
        raise ValueError("Expected one timestamp per ground-truth state")
    if pattern not in ("alternate", "lidar", "radar"):
        raise ValueError(f"Unknown pattern: {pattern}")
    rng = rng if rng is not None else random_generator.get_rng()

    lidar_noise_std = np.asarray(lidar_noise_std, dtype=float)
    radar_noise_std = np.asarray(radar_noise_std, dtype=float)

    measurements = []
    for t, (state, timestamp) in enumerate(zip(truth, timestamps)):
        use_radar = pattern == "radar" or (pattern == "alternate" and t % 2 == 1)
        if use_radar:
            rho, phi, rho_dot = h_radar(state, min_range=1e-4) + rng.normal(0.0, radar_noise_std)
            measurements.append(RadarMeasurement(timestamp=int(timestamp), rho=float(rho),
                                                 phi=normalize_angle(phi), rho_dot=float(rho_dot)))
        else:
            px, py = state[:2] + rng.normal(0.0, lidar_noise_std)
            measurements.append(LidarMeasurement(timestamp=int(timestamp), px=float(px), py=float(py)))
    return measurements
