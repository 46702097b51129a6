from dataclasses import dataclass
from typing import Iterable, List, Optional, Union

import numpy as np

from ctrv_tracking.dataset.measurement_package import SensorType, Measurement


@dataclass(frozen=True)
class UKFConfig:
    """
    Noise parameters and sensor switches of the fusion filter. Set once at construction.
    """
    # process noise
    std_accel: float = 3.8  # longitudinal acceleration [m/s^2]
    std_yaw_accel: float = 0.3  # yaw acceleration [rad/s^2]
    # lidar
    std_pos_x: float = 0.15  # [m]
    std_pos_y: float = 0.15  # [m]
    # radar
    std_range: float = 0.3  # [m]
    std_bearing: float = 0.03  # [rad]
    std_range_rate: float = 0.3  # [m/s]
    # if False, measurements of that sensor are ignored (except the one that initializes the filter)
    use_laser: bool = True
    use_radar: bool = True
    # P0: None for identity, a 5-vector for a diagonal, or a full 5x5 matrix
    initial_covariance: Optional[Union[np.ndarray, list]] = None
    min_range: float = 1e-4
    max_condition_number: float = 1e12

    def __post_init__(self):
        # zero process noise leaves the augmented covariance singular
        for name in ("std_accel", "std_yaw_accel"):
            value = getattr(self, name)
            if not np.isfinite(value) or value <= 0:
                raise ValueError(f"{name} must be a positive finite number, got {value}")
        for name in ("std_pos_x", "std_pos_y", "std_range", "std_bearing", "std_range_rate"):
            value = getattr(self, name)
            if not np.isfinite(value) or value < 0:
                raise ValueError(f"{name} must be a non-negative finite number, got {value}")
        if self.min_range <= 0:
            raise ValueError(f"min_range must be positive, got {self.min_range}")
        if self.max_condition_number <= 1:
            raise ValueError(f"max_condition_number must be greater than 1, got {self.max_condition_number}")
        if self.initial_covariance is not None:
            P0 = np.asarray(self.initial_covariance, dtype=float)
            if P0.shape not in [(5,), (5, 5)]:
                raise ValueError(f"initial_covariance must have shape (5,) or (5, 5), got {P0.shape}")

    def initial_P(self) -> np.ndarray:
        if self.initial_covariance is None:
            return np.eye(5)
        P0 = np.asarray(self.initial_covariance, dtype=float)
        if P0.ndim == 1:
            return np.diag(P0)
        return P0.copy()

    def is_enabled(self, sensor_type: SensorType) -> bool:
        if sensor_type is SensorType.LASER:
            return self.use_laser
        return self.use_radar


@dataclass(frozen=True)
class Belief:
    """
    Read-only snapshot of the filter belief after a measurement.
    """
    x: np.ndarray
    P: np.ndarray
    timestamp: Optional[int]
    nis: Optional[float] = None
    sensor_type: Optional[SensorType] = None


class BaseKalmanFilter:
    """
    This is a base class for the measurement-driven filters used in this project.
    A subclass owns the belief (x, P) and advances it one measurement at a time.
    """

    def __init__(self, dim_state: int, config: UKFConfig):
        self.dim_state = int(dim_state)
        self.config = config
        self._x = np.zeros(self.dim_state)
        self._P = np.eye(self.dim_state)
        self.is_initialized = False
        self.previous_timestamp: Optional[int] = None
        self.nis: Optional[float] = None

    @property
    def x(self) -> np.ndarray:
        return self._x.copy()

    @property
    def P(self) -> np.ndarray:
        return self._P.copy()

    def belief(self, sensor_type: Optional[SensorType] = None) -> Belief:
        return Belief(x=self.x, P=self.P, timestamp=self.previous_timestamp, nis=self.nis,
                      sensor_type=sensor_type)

    def predict(self, delta_t: float):
        raise NotImplementedError("Subclass must implement predict(delta_t)")

    def update(self, measurement: Measurement):
        raise NotImplementedError("Subclass must implement update(measurement)")

    def process_measurement(self, measurement: Measurement) -> Belief:
        raise NotImplementedError("Subclass must implement process_measurement(measurement)")

    def run(self, measurements: Iterable[Measurement]) -> List[Belief]:
        """
        Feeds a timestamp-ordered sequence of measurements and returns the belief after each one.
        """
        return [self.process_measurement(measurement) for measurement in measurements]
