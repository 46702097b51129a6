"""
ctrv_tracking: lidar/radar fusion with a CTRV Unscented Kalman Filter.
"""

__version__ = "0.1.0"

from .dataset.measurement_package import SensorType, LidarMeasurement, RadarMeasurement, make_measurement
from .errors import (
    TrackingError,
    NumericSingularityError,
    DegenerateGeometryError,
    OutOfOrderMeasurementError,
)
from .filters import CTRVUnscentedKalmanFilter, UKFConfig, Belief

__all__ = [
    'SensorType',
    'LidarMeasurement',
    'RadarMeasurement',
    'make_measurement',
    'TrackingError',
    'NumericSingularityError',
    'DegenerateGeometryError',
    'OutOfOrderMeasurementError',
    'CTRVUnscentedKalmanFilter',
    'UKFConfig',
    'Belief',
]
