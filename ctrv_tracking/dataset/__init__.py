from .measurement_package import (
    SensorType,
    LidarMeasurement,
    RadarMeasurement,
    Measurement,
    make_measurement,
)
from .random_gen import random_generator

__all__ = [
    'SensorType',
    'LidarMeasurement',
    'RadarMeasurement',
    'Measurement',
    'make_measurement',
    'random_generator',
]
