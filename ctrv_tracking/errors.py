"""
Exceptions raised by the tracking filters.

Every failure is reported to the caller. A filter that raises one of these
keeps the belief it had before the failing measurement, so the caller may skip
the measurement and continue.
"""

import numpy as np


class TrackingError(Exception):
    """Base class for all errors raised by this package."""


class NumericSingularityError(TrackingError, np.linalg.LinAlgError):
    """
    A covariance could not be factorized or an innovation covariance could not be inverted.
    """


class DegenerateGeometryError(TrackingError, ValueError):
    """
    The predicted object sits on the radar origin, where bearing and range-rate are undefined.
    """


class OutOfOrderMeasurementError(TrackingError, ValueError):
    """
    A measurement arrived with a timestamp earlier than the last processed one.
    """

    def __init__(self, timestamp, previous_timestamp):
        super().__init__(
            f"Measurement timestamp {timestamp} is earlier than the previous timestamp {previous_timestamp}"
        )
        self.timestamp = timestamp
        self.previous_timestamp = previous_timestamp
