import numpy as np
import pytest
from numpy.testing import assert_allclose

from ctrv_tracking.dataset.measurement_package import LidarMeasurement, RadarMeasurement, SensorType
from ctrv_tracking.errors import (
    DegenerateGeometryError,
    NumericSingularityError,
    OutOfOrderMeasurementError,
)
from ctrv_tracking.evaluation_tools import calculate_rmse, state_to_cartesian
from ctrv_tracking.filters import Belief, CTRVUnscentedKalmanFilter, UKFConfig
from ctrv_tracking.filters import ctrv_unscented_kalman_filter as ukf_module
from ctrv_tracking.motion_models import CTRVState, generate_ctrv_trajectory, generate_measurements


@pytest.fixture
def ukf():
    return CTRVUnscentedKalmanFilter()


def _assert_belief_unchanged(ukf, x, P, timestamp):
    assert_allclose(ukf.x, x)
    assert_allclose(ukf.P, P)
    assert ukf.previous_timestamp == timestamp


class TestInitialization:

    def test_from_radar(self, ukf):
        belief = ukf.process_measurement(RadarMeasurement(timestamp=0, rho=5.0, phi=0.0, rho_dot=0.0))
        assert ukf.is_initialized
        assert_allclose(belief.x, [5.0, 0.0, 0.0, 0.0, 0.0])
        assert_allclose(belief.P, np.eye(5))
        assert belief.timestamp == 0
        assert belief.sensor_type is SensorType.RADAR
        assert belief.nis is None

    def test_from_radar_polar_conversion(self, ukf):
        ukf.process_measurement(RadarMeasurement(timestamp=0, rho=2.0, phi=np.pi / 2, rho_dot=1.0))
        assert_allclose(ukf.x, [0.0, 2.0, 0.0, 0.0, 0.0], atol=1e-12)

    def test_from_lidar(self, ukf):
        belief = ukf.process_measurement(LidarMeasurement(timestamp=0, px=3.0, py=4.0))
        assert_allclose(belief.x, [3.0, 4.0, 0.0, 0.0, 0.0])
        assert belief.sensor_type is SensorType.LASER

    def test_initial_covariance_from_config(self):
        ukf = CTRVUnscentedKalmanFilter(UKFConfig(initial_covariance=[0.1, 0.1, 4.0, 1.0, 0.5]))
        ukf.process_measurement(LidarMeasurement(timestamp=0, px=3.0, py=4.0))
        assert_allclose(ukf.P, np.diag([0.1, 0.1, 4.0, 1.0, 0.5]))

    def test_first_measurement_initializes_even_if_sensor_disabled(self):
        ukf = CTRVUnscentedKalmanFilter(UKFConfig(use_radar=False))
        ukf.process_measurement(RadarMeasurement(timestamp=0, rho=5.0, phi=0.0, rho_dot=0.0))
        assert ukf.is_initialized
        assert_allclose(ukf.x, [5.0, 0.0, 0.0, 0.0, 0.0])

    def test_unsupported_measurement_raises(self, ukf):
        with pytest.raises(TypeError):
            ukf.process_measurement(np.array([1.0, 2.0]))

    def test_predict_before_initialization_raises(self, ukf):
        with pytest.raises(RuntimeError):
            ukf.predict(0.1)

    def test_exported_state_is_a_copy(self, ukf):
        ukf.process_measurement(LidarMeasurement(timestamp=0, px=3.0, py=4.0))
        x = ukf.x
        x[0] = 100.0
        assert ukf.x[0] == 3.0


class TestPrediction:

    def test_straight_motion(self):
        ukf = CTRVUnscentedKalmanFilter(UKFConfig(initial_covariance=[1e-4] * 5))
        ukf.process_measurement(LidarMeasurement(timestamp=0, px=0.0, py=0.0))
        ukf._x = np.array([0.0, 0.0, 10.0, 0.0, 0.0])
        ukf.predict(1.0)
        assert ukf.x[0] == pytest.approx(10.0, abs=1e-2)
        assert ukf.x[1] == pytest.approx(0.0, abs=1e-6)
        assert ukf.x[2] == pytest.approx(10.0, abs=1e-6)

    def test_covariance_grows_without_updates(self, ukf):
        ukf.process_measurement(LidarMeasurement(timestamp=0, px=1.0, py=2.0))
        traces = [np.trace(ukf.P)]
        for _ in range(6):
            ukf.predict(0.1)
            traces.append(np.trace(ukf.P))
        assert np.all(np.diff(traces) > 0)

    def test_prediction_stores_sigma_points(self, ukf):
        ukf.process_measurement(LidarMeasurement(timestamp=0, px=1.0, py=2.0))
        ukf.predict(0.1)
        assert ukf.sigmas_aug.shape == (15, 7)
        assert ukf.sigmas_pred.shape == (15, 5)
        mean = ukf.weights @ ukf.sigmas_pred
        assert_allclose(mean[[0, 1, 2, 4]], ukf.x[[0, 1, 2, 4]], atol=1e-12)
        assert ukf.x[3] == pytest.approx(mean[3], abs=1e-9)


class TestProcessMeasurement:

    def test_elapsed_time_from_microseconds(self, ukf):
        ukf.process_measurement(LidarMeasurement(timestamp=0, px=0.0, py=0.0))
        ukf._x = np.array([0.0, 0.0, 2.0, 0.0, 0.0])
        reference = CTRVUnscentedKalmanFilter()
        reference.process_measurement(LidarMeasurement(timestamp=0, px=0.0, py=0.0))
        reference._x = np.array([0.0, 0.0, 2.0, 0.0, 0.0])

        ukf.process_measurement(LidarMeasurement(timestamp=500_000, px=1.0, py=0.0))
        reference.predict(0.5)
        reference.update(LidarMeasurement(timestamp=500_000, px=1.0, py=0.0))

        assert_allclose(ukf.x, reference.x)
        assert_allclose(ukf.P, reference.P)
        assert ukf.previous_timestamp == 500_000

    def test_lidar_update_pulls_towards_measurement(self, ukf):
        ukf.process_measurement(LidarMeasurement(timestamp=0, px=0.0, py=0.0))
        belief = ukf.process_measurement(LidarMeasurement(timestamp=100_000, px=1.0, py=-1.0))
        assert 0.0 < belief.x[0] < 1.0
        assert -1.0 < belief.x[1] < 0.0
        assert belief.nis is not None and belief.nis > 0.0

    def test_radar_update(self, ukf):
        ukf.process_measurement(LidarMeasurement(timestamp=0, px=5.0, py=0.0))
        belief = ukf.process_measurement(RadarMeasurement(timestamp=100_000, rho=5.2, phi=0.01, rho_dot=1.0))
        assert belief.sensor_type is SensorType.RADAR
        assert belief.x[0] > 5.0
        assert np.all(np.isfinite(belief.P))
        assert ukf.nis == belief.nis

    def test_equal_timestamps_are_allowed(self, ukf):
        ukf.process_measurement(LidarMeasurement(timestamp=10, px=1.0, py=1.0))
        belief = ukf.process_measurement(LidarMeasurement(timestamp=10, px=1.1, py=0.9))
        assert belief.timestamp == 10

    def test_out_of_order_raises_and_keeps_belief(self, ukf):
        ukf.process_measurement(LidarMeasurement(timestamp=0, px=1.0, py=1.0))
        ukf.process_measurement(LidarMeasurement(timestamp=100_000, px=1.1, py=1.0))
        x, P = ukf.x, ukf.P

        with pytest.raises(OutOfOrderMeasurementError) as excinfo:
            ukf.process_measurement(LidarMeasurement(timestamp=50_000, px=1.0, py=1.0))

        assert excinfo.value.previous_timestamp == 100_000
        _assert_belief_unchanged(ukf, x, P, 100_000)

    def test_disabled_sensor_is_ignored(self):
        ukf = CTRVUnscentedKalmanFilter(UKFConfig(use_radar=False))
        ukf.process_measurement(LidarMeasurement(timestamp=0, px=5.0, py=0.0))
        x, P = ukf.x, ukf.P

        ukf.process_measurement(RadarMeasurement(timestamp=100_000, rho=7.0, phi=0.3, rho_dot=1.0))
        _assert_belief_unchanged(ukf, x, P, 0)

        ukf.process_measurement(LidarMeasurement(timestamp=200_000, px=5.1, py=0.0))
        assert ukf.previous_timestamp == 200_000

    def test_disabled_sensor_is_logged_as_warning(self, monkeypatch):
        messages = []
        monkeypatch.setattr(ukf_module.logger, "warning", lambda msg, *args: messages.append(msg % args))
        ukf = CTRVUnscentedKalmanFilter(UKFConfig(use_radar=False))
        ukf.process_measurement(LidarMeasurement(timestamp=0, px=5.0, py=0.0))
        ukf.process_measurement(RadarMeasurement(timestamp=100_000, rho=7.0, phi=0.3, rho_dot=1.0))
        assert messages == ["Ignoring RADAR measurement at t=100000, sensor disabled"]

    def test_config_cannot_change_after_construction(self, ukf):
        with pytest.raises(AttributeError):
            ukf.config.std_range = 10.0
        assert_allclose(ukf.R_radar, np.diag([0.09, 0.0009, 0.09]))

    def test_disabled_lidar_is_ignored(self):
        ukf = CTRVUnscentedKalmanFilter(UKFConfig(use_laser=False))
        ukf.process_measurement(RadarMeasurement(timestamp=0, rho=5.0, phi=0.0, rho_dot=0.0))
        x, P = ukf.x, ukf.P
        ukf.process_measurement(LidarMeasurement(timestamp=100_000, px=9.0, py=9.0))
        _assert_belief_unchanged(ukf, x, P, 0)

    def test_degenerate_geometry_keeps_belief(self, ukf):
        ukf.process_measurement(LidarMeasurement(timestamp=0, px=0.0, py=0.0))
        x, P = ukf.x, ukf.P

        with pytest.raises(DegenerateGeometryError):
            ukf.process_measurement(RadarMeasurement(timestamp=100_000, rho=0.1, phi=0.0, rho_dot=0.0))

        _assert_belief_unchanged(ukf, x, P, 0)
        # the caller may skip the reading and keep going
        ukf.process_measurement(LidarMeasurement(timestamp=200_000, px=0.1, py=0.0))
        assert ukf.previous_timestamp == 200_000

    def test_numeric_singularity_keeps_belief(self):
        ukf = CTRVUnscentedKalmanFilter(UKFConfig(initial_covariance=[-1.0, 1.0, 1.0, 1.0, 1.0]))
        ukf.process_measurement(LidarMeasurement(timestamp=0, px=1.0, py=1.0))
        x, P = ukf.x, ukf.P

        with pytest.raises(NumericSingularityError):
            ukf.process_measurement(LidarMeasurement(timestamp=100_000, px=1.0, py=1.0))

        _assert_belief_unchanged(ukf, x, P, 0)

    def test_radar_update_without_prediction(self, ukf):
        ukf.process_measurement(LidarMeasurement(timestamp=0, px=5.0, py=5.0))
        result = ukf.update(RadarMeasurement(timestamp=0, rho=7.1, phi=np.pi / 4, rho_dot=0.0))
        assert result.nis >= 0.0
        assert_allclose(ukf.x, result.x)


class TestTracking:

    @pytest.fixture
    def scenario(self):
        rng = np.random.default_rng(7)
        dt = 0.05
        truth = generate_ctrv_trajectory(
            T=200,
            dt=dt,
            initial_state=CTRVState(position=[5.0, 5.0], speed=5.0, yaw=0.3, yaw_rate=0.2),
            accel_noise_std=0.5,
            yaw_accel_noise_std=0.1,
            rng=rng,
        )
        timestamps = (np.arange(truth.shape[0]) * dt * 1e6).astype(np.int64)
        measurements = generate_measurements(truth, timestamps, rng=rng)
        return truth, measurements

    def test_run_returns_belief_per_measurement(self, ukf, scenario):
        _, measurements = scenario
        beliefs = ukf.run(measurements)
        assert len(beliefs) == len(measurements)
        assert all(isinstance(b, Belief) for b in beliefs)
        assert [b.timestamp for b in beliefs] == [m.timestamp for m in measurements]

    def test_fused_estimate_tracks_ground_truth(self, ukf, scenario):
        truth, measurements = scenario
        beliefs = ukf.run(measurements)
        estimates = state_to_cartesian(np.array([b.x for b in beliefs]))
        expected = state_to_cartesian(truth)

        rmse = calculate_rmse(estimates[100:], expected[100:])
        assert rmse[0] < 0.3
        assert rmse[1] < 0.3
        assert rmse[2] < 1.0
        assert rmse[3] < 1.0

    def test_covariance_stays_symmetric_positive_definite(self, ukf, scenario):
        _, measurements = scenario
        for belief in ukf.run(measurements):
            assert_allclose(belief.P, belief.P.T, atol=1e-8)
            assert np.all(np.linalg.eigvalsh(0.5 * (belief.P + belief.P.T)) > 0)
