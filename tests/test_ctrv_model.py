import numpy as np
import pytest
from numpy.testing import assert_allclose

from ctrv_tracking.filters.ctrv_model import YAW_RATE_EPS, ctrv_transition, propagate_sigma_points
from ctrv_tracking.filters.sigma_points import generate_augmented_sigma_points


def _point(px=0.0, py=0.0, v=0.0, yaw=0.0, yawd=0.0, nu_a=0.0, nu_yawdd=0.0):
    return np.array([px, py, v, yaw, yawd, nu_a, nu_yawdd])


class TestCTRVTransition:

    def test_straight_motion(self):
        out = ctrv_transition(_point(v=10.0), 1.0)
        assert_allclose(out, [10.0, 0.0, 10.0, 0.0, 0.0])

    def test_straight_motion_with_heading(self):
        out = ctrv_transition(_point(px=1.0, py=2.0, v=4.0, yaw=np.pi / 3), 0.5)
        assert_allclose(out[:2], [1.0 + 2.0 * np.cos(np.pi / 3), 2.0 + 2.0 * np.sin(np.pi / 3)])

    def test_small_yaw_rate_matches_zero_yaw_rate(self):
        zero = ctrv_transition(_point(v=10.0, yaw=0.4), 1.0)
        small = ctrv_transition(_point(v=10.0, yaw=0.4, yawd=1e-4), 1.0)
        assert_allclose(small[:3], zero[:3], rtol=0, atol=1e-12)
        assert small[3] == pytest.approx(0.4 + 1e-4)

    def test_branches_agree_at_threshold(self):
        below = ctrv_transition(_point(v=5.0, yaw=1.0, yawd=0.999 * YAW_RATE_EPS), 0.1)
        above = ctrv_transition(_point(v=5.0, yaw=1.0, yawd=1.001 * YAW_RATE_EPS), 0.1)
        assert_allclose(below[:2], above[:2], atol=1e-4)

    def test_quarter_turn(self):
        # 1 m/s at 90 deg/s for one second traces a quarter circle of radius 2/pi
        out = ctrv_transition(_point(v=1.0, yawd=np.pi / 2), 1.0)
        radius = 2.0 / np.pi
        assert_allclose(out, [radius, radius, 1.0, np.pi / 2, np.pi / 2], atol=1e-12)

    def test_noise_terms(self):
        out = ctrv_transition(_point(nu_a=2.0, nu_yawdd=0.5), 2.0)
        assert_allclose(out, [4.0, 0.0, 4.0, 1.0, 1.0])

    def test_acceleration_noise_follows_heading(self):
        out = ctrv_transition(_point(yaw=np.pi / 2, nu_a=1.0), 1.0)
        assert_allclose(out[:2], [0.0, 0.5], atol=1e-12)

    def test_zero_time_step(self):
        point = _point(px=3.0, py=-1.0, v=2.0, yaw=0.3, yawd=0.5, nu_a=1.0, nu_yawdd=1.0)
        assert_allclose(ctrv_transition(point, 0.0), point[:5])


class TestPropagateSigmaPoints:

    def test_shape_and_rowwise_transition(self):
        sigmas = generate_augmented_sigma_points(np.array([1.0, 1.0, 3.0, 0.2, 0.3]), np.eye(5), 3.8, 0.3)
        pred = propagate_sigma_points(sigmas, 0.1)
        assert pred.shape == (15, 5)
        for row_aug, row_pred in zip(sigmas, pred):
            assert_allclose(row_pred, ctrv_transition(row_aug, 0.1))

    def test_negative_time_step_raises(self):
        with pytest.raises(ValueError):
            propagate_sigma_points(np.zeros((15, 7)), -0.1)

    def test_wrong_shape_raises(self):
        with pytest.raises(ValueError):
            propagate_sigma_points(np.zeros((15, 5)), 0.1)
