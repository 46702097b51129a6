from typing import Optional

import numpy as np

from ctrv_tracking.dataset.measurement_package import (
    LidarMeasurement,
    Measurement,
    RadarMeasurement,
)
from ctrv_tracking.errors import OutOfOrderMeasurementError
from ctrv_tracking.filters.base_kalman_filter import BaseKalmanFilter, Belief, UKFConfig
from ctrv_tracking.filters.ctrv_model import propagate_sigma_points
from ctrv_tracking.filters.measurement_models import (
    UpdateResult,
    lidar_noise_covariance,
    lidar_update,
    radar_noise_covariance,
    radar_update,
)
from ctrv_tracking.filters.sigma_points import (
    AUGMENTED_DIM,
    N_SIGMA,
    STATE_DIM,
    compute_weights,
    generate_augmented_sigma_points,
    predict_mean_and_covariance,
)
from ctrv_tracking.utils.logger import get_logger

logger = get_logger(__name__)

MICROSECONDS_PER_SECOND = 1e6


class CTRVUnscentedKalmanFilter(BaseKalmanFilter):
    """
    Unscented Kalman Filter with a CTRV motion model, fusing lidar and radar measurements.
    State: [px, py, v, yaw, yaw_rate]

    The first measurement only initializes the state. Every later measurement runs a prediction
    over the elapsed time followed by the update that matches the sensor:
        lidar -> linear Kalman update (H picks px, py)
        radar -> unscented update through [rho, phi, rho_dot]

    A cycle is computed on local copies and committed only when it succeeds, so an exception
    leaves the previous belief and timestamp untouched.
    """

    def __init__(self, config: Optional[UKFConfig] = None):
        super().__init__(dim_state=STATE_DIM, config=config if config is not None else UKFConfig())
        self.n_aug = AUGMENTED_DIM
        self.weights = compute_weights(self.n_aug)

        self.R_lidar = lidar_noise_covariance(self.config.std_pos_x, self.config.std_pos_y)
        self.R_radar = radar_noise_covariance(self.config.std_range, self.config.std_bearing,
                                              self.config.std_range_rate)

        # sigma point buffers, overwritten every prediction
        self.sigmas_aug = np.zeros((N_SIGMA, self.n_aug))
        self.sigmas_pred = np.zeros((N_SIGMA, STATE_DIM))
        # True while sigmas_pred describe the current belief (i.e. no update since the last prediction)
        self._sigmas_current = False

    def initialize(self, measurement: Measurement):
        """
        Sets the state from a single measurement. Speed, yaw and yaw rate are not observable
        from one reading, so they start at zero.
        """
        if isinstance(measurement, RadarMeasurement):
            px, py = measurement.to_cartesian()
        elif isinstance(measurement, LidarMeasurement):
            px, py = measurement.px, measurement.py
        else:
            raise TypeError(f"Unsupported measurement type: {type(measurement).__name__}")

        self._x = np.array([px, py, 0.0, 0.0, 0.0])
        self._P = self.config.initial_P()
        self.previous_timestamp = measurement.timestamp
        self.nis = None
        self._sigmas_current = False
        self.is_initialized = True
        logger.info("UKF initialized from %s measurement at t=%d: x=%s",
                    measurement.sensor_type.name, measurement.timestamp, self._x)

    def _prediction(self, x: np.ndarray, P: np.ndarray, delta_t: float):
        sigmas_aug = generate_augmented_sigma_points(x, P, self.config.std_accel, self.config.std_yaw_accel)
        sigmas_pred = propagate_sigma_points(sigmas_aug, delta_t)
        x_pred, P_pred = predict_mean_and_covariance(sigmas_pred, self.weights)
        return sigmas_aug, sigmas_pred, x_pred, P_pred

    def _commit_prediction(self, sigmas_aug, sigmas_pred, x_pred, P_pred):
        self.sigmas_aug = sigmas_aug
        self.sigmas_pred = sigmas_pred
        self._x = x_pred
        self._P = P_pred
        self._sigmas_current = True

    def predict(self, delta_t: float):
        """
        Predicts sigma points, the state, and the state covariance matrix delta_t seconds ahead.
        """
        if not self.is_initialized:
            raise RuntimeError("The filter must be initialized with a measurement before predicting")
        self._commit_prediction(*self._prediction(self._x, self._P, delta_t))

    def _update(self, x_pred, P_pred, sigmas_pred, measurement: Measurement) -> UpdateResult:
        if isinstance(measurement, LidarMeasurement):
            return lidar_update(x_pred, P_pred, measurement.raw, self.R_lidar,
                                max_condition_number=self.config.max_condition_number)
        if isinstance(measurement, RadarMeasurement):
            return radar_update(x_pred, P_pred, sigmas_pred, self.weights, measurement.raw, self.R_radar,
                                min_range=self.config.min_range,
                                max_condition_number=self.config.max_condition_number)
        raise TypeError(f"Unsupported measurement type: {type(measurement).__name__}")

    def _commit_update(self, result: UpdateResult):
        self._x = result.x
        self._P = result.P
        self.nis = result.nis
        self._sigmas_current = False

    def update(self, measurement: Measurement) -> UpdateResult:
        """
        Updates the current belief with a measurement, without predicting first.
        The radar update needs sigma points of the current belief; if the belief has been
        updated since the last prediction they are regenerated with a zero time step.
        """
        if not self.is_initialized:
            raise RuntimeError("The filter must be initialized with a measurement before updating")
        if isinstance(measurement, RadarMeasurement) and not self._sigmas_current:
            self.predict(0.0)
        result = self._update(self._x, self._P, self.sigmas_pred, measurement)
        self._commit_update(result)
        return result

    def process_measurement(self, measurement: Measurement) -> Belief:
        """
        Runs one full filter cycle for `measurement` and returns the resulting belief.

        Raises OutOfOrderMeasurementError if the timestamp is earlier than the previous one,
        NumericSingularityError / DegenerateGeometryError if the cycle cannot be computed.
        """
        if not isinstance(measurement, (LidarMeasurement, RadarMeasurement)):
            raise TypeError(f"Unsupported measurement type: {type(measurement).__name__}")

        if not self.is_initialized:
            self.initialize(measurement)
            return self.belief(measurement.sensor_type)

        if not self.config.is_enabled(measurement.sensor_type):
            logger.warning("Ignoring %s measurement at t=%d, sensor disabled",
                         measurement.sensor_type.name, measurement.timestamp)
            return self.belief(measurement.sensor_type)

        if measurement.timestamp < self.previous_timestamp:
            logger.warning("Rejecting %s measurement at t=%d, previous measurement was at t=%d",
                           measurement.sensor_type.name, measurement.timestamp, self.previous_timestamp)
            raise OutOfOrderMeasurementError(measurement.timestamp, self.previous_timestamp)

        delta_t = (measurement.timestamp - self.previous_timestamp) / MICROSECONDS_PER_SECOND

        try:
            prediction = self._prediction(self._x, self._P, delta_t)
            sigmas_aug, sigmas_pred, x_pred, P_pred = prediction
            result = self._update(x_pred, P_pred, sigmas_pred, measurement)
        except (np.linalg.LinAlgError, ValueError) as e:
            logger.warning("Filter cycle failed for %s measurement at t=%d: %s",
                           measurement.sensor_type.name, measurement.timestamp, e)
            raise

        self._commit_prediction(*prediction)
        self._commit_update(result)
        self.previous_timestamp = measurement.timestamp
        logger.debug("%s update at t=%d, dt=%.4f s, NIS=%.3f",
                     measurement.sensor_type.name, measurement.timestamp, delta_t, result.nis)
        return self.belief(measurement.sensor_type)
