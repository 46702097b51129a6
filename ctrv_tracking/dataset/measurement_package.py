"""
Measurement records consumed by the filters.

A measurement is one of two payload shapes: a lidar position fix (px, py) or a radar
polar reading (rho, phi, rho_dot). Timestamps are integer microseconds.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Sequence, Union

import numpy as np


class SensorType(Enum):
    LASER = "L"
    RADAR = "R"


@dataclass(frozen=True)
class LidarMeasurement:
    timestamp: int
    px: float
    py: float

    sensor_type = SensorType.LASER
    dim = 2

    @property
    def raw(self) -> np.ndarray:
        return np.array([self.px, self.py], dtype=float)


@dataclass(frozen=True)
class RadarMeasurement:
    timestamp: int
    rho: float  # range [m]
    phi: float  # bearing [rad]
    rho_dot: float  # range rate [m/s]

    sensor_type = SensorType.RADAR
    dim = 3

    @property
    def raw(self) -> np.ndarray:
        return np.array([self.rho, self.phi, self.rho_dot], dtype=float)

    def to_cartesian(self) -> np.ndarray:
        """
        Position of the reading in the sensor's Cartesian frame.
        """
        return np.array([self.rho * np.cos(self.phi), self.rho * np.sin(self.phi)])


Measurement = Union[LidarMeasurement, RadarMeasurement]


def make_measurement(sensor_type: SensorType, raw: Sequence[float], timestamp: int) -> Measurement:
    """
    Builds a measurement record from a sensor tag and its raw values.

    :param sensor_type: SensorType.LASER or SensorType.RADAR (or their "L"/"R" values)
    :param raw: 2 values (px, py) for lidar, 3 values (rho, phi, rho_dot) for radar
    :param timestamp: integer microseconds
    """
    sensor_type = SensorType(sensor_type)
    raw = np.asarray(raw, dtype=float).reshape(-1)
    if sensor_type is SensorType.LASER:
        if raw.shape != (2,):
            raise ValueError(f"Lidar measurement needs 2 values, got {raw.shape[0]}")
        return LidarMeasurement(timestamp=int(timestamp), px=float(raw[0]), py=float(raw[1]))

    if raw.shape != (3,):
        raise ValueError(f"Radar measurement needs 3 values, got {raw.shape[0]}")
    return RadarMeasurement(timestamp=int(timestamp), rho=float(raw[0]), phi=float(raw[1]), rho_dot=float(raw[2]))
