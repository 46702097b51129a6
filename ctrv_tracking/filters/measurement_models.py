"""
Measurement models and update steps for the two sensors.

Lidar observes [px, py] linearly, so it gets a closed-form Kalman update.
Radar observes [rho, phi, rho_dot] through a nonlinear function of the state, so it
gets an unscented update built on the sigma points of the last prediction.
"""

from dataclasses import dataclass

import numpy as np
from filterpy.kalman import unscented_transform

from ctrv_tracking.errors import NumericSingularityError, DegenerateGeometryError
from ctrv_tracking.filters.sigma_points import STATE_DIM, radar_mean, radar_residual, state_residual

LIDAR_H = np.array([
    [1, 0, 0, 0, 0],  # px
    [0, 1, 0, 0, 0],  # py
], dtype=float)

DEFAULT_MAX_CONDITION_NUMBER = 1e12


@dataclass
class UpdateResult:
    x: np.ndarray  # posterior mean
    P: np.ndarray  # posterior covariance
    innovation: np.ndarray
    S: np.ndarray  # innovation covariance
    K: np.ndarray  # Kalman gain
    nis: float  # normalized innovation squared, y^T S^-1 y


def lidar_noise_covariance(std_pos_x: float, std_pos_y: float) -> np.ndarray:
    return np.diag([std_pos_x ** 2, std_pos_y ** 2])


def radar_noise_covariance(std_range: float, std_bearing: float, std_range_rate: float) -> np.ndarray:
    return np.diag([std_range ** 2, std_bearing ** 2, std_range_rate ** 2])


def h_radar(state: np.ndarray, min_range: float = 0.0) -> np.ndarray:
    """
    Radar measurement function: [px, py, v, yaw, yaw_rate] -> [rho, phi, rho_dot].
    The range used as divisor for rho_dot is clamped from below at `min_range`.
    """
    px, py, v, yaw = state[0], state[1], state[2], state[3]
    rho = np.hypot(px, py)
    phi = np.arctan2(py, px)
    vx = np.cos(yaw) * v
    vy = np.sin(yaw) * v
    rho_dot = (px * vx + py * vy) / max(rho, min_range)
    return np.array([rho, phi, rho_dot])


def invert_innovation_covariance(S: np.ndarray,
                                 max_condition_number: float = DEFAULT_MAX_CONDITION_NUMBER) -> np.ndarray:
    """
    Inverse of the innovation covariance S.
    Raises NumericSingularityError if S is singular, ill-conditioned or non-finite.
    """
    if not np.all(np.isfinite(S)):
        raise NumericSingularityError("Innovation covariance contains non-finite values")
    cond = np.linalg.cond(S)
    if not np.isfinite(cond) or cond > max_condition_number:
        raise NumericSingularityError(f"Innovation covariance is singular (condition number {cond:.3e})")
    try:
        return np.linalg.inv(S)
    except np.linalg.LinAlgError as e:
        raise NumericSingularityError(f"Innovation covariance is singular: {e}") from e


def linear_update(x: np.ndarray, P: np.ndarray, z: np.ndarray, H: np.ndarray, R: np.ndarray,
                  max_condition_number: float = DEFAULT_MAX_CONDITION_NUMBER) -> UpdateResult:
    """
    Standard Kalman measurement update for a linear measurement z = Hx + r, r ~ N(0, R):
        y = z - Hx
        S = H P H^T + R
        K = P H^T S^-1
        x = x + K y
        P = (I - K H) P
    """
    z = np.asarray(z, dtype=float).reshape(-1)
    if z.shape[0] != H.shape[0]:
        raise ValueError(f"Expected a measurement with {H.shape[0]} elements, got {z.shape[0]}")

    y = z - H @ x
    PHt = P @ H.T
    S = H @ PHt + R
    SI = invert_innovation_covariance(S, max_condition_number)
    K = PHt @ SI

    x_new = x + K @ y
    I = np.eye(x.shape[0])
    P_new = (I - K @ H) @ P

    return UpdateResult(x=x_new, P=P_new, innovation=y, S=S, K=K, nis=float(y @ SI @ y))


def lidar_update(x: np.ndarray, P: np.ndarray, z: np.ndarray, R: np.ndarray,
                 max_condition_number: float = DEFAULT_MAX_CONDITION_NUMBER) -> UpdateResult:
    return linear_update(x, P, z, LIDAR_H, R, max_condition_number)


def radar_update(x_pred: np.ndarray, P_pred: np.ndarray, sigmas_pred: np.ndarray, weights: np.ndarray,
                 z: np.ndarray, R: np.ndarray, min_range: float = 1e-4,
                 max_condition_number: float = DEFAULT_MAX_CONDITION_NUMBER) -> UpdateResult:
    """
    Unscented measurement update for a radar reading.

    The predicted state sigma points are mapped to measurement space (no re-sampling),
    their weighted mean (circular in bearing) and covariance give z_pred and S, and the cross correlation
    Tc = sum_i w_i (X_i - x)(Z_i - z_pred)^T gives the gain K = Tc S^-1.
    Yaw and bearing residuals are wrapped into (-pi, pi] everywhere.

    :param x_pred: predicted mean, shape (5,)
    :param P_pred: predicted covariance, shape (5, 5)
    :param sigmas_pred: predicted sigma points, shape (15, 5)
    :param weights: sigma point weights, shape (15,)
    :param z: radar reading [rho, phi, rho_dot]
    :param R: radar noise covariance, shape (3, 3)
    :param min_range: objects closer than this to the sensor are treated as degenerate
    """
    z = np.asarray(z, dtype=float).reshape(-1)
    if z.shape != (3,):
        raise ValueError(f"Expected a radar measurement with 3 elements, got {z.shape[0]}")
    if np.hypot(x_pred[0], x_pred[1]) < min_range:
        raise DegenerateGeometryError(
            f"Predicted position ({x_pred[0]:.3g}, {x_pred[1]:.3g}) is within {min_range} of the radar origin"
        )

    sigmas_z = np.array([h_radar(s, min_range) for s in sigmas_pred])
    z_pred, S = unscented_transform(sigmas_z, weights, weights, noise_cov=R,
                                    mean_fn=radar_mean, residual_fn=radar_residual)

    Tc = np.zeros((STATE_DIM, z.shape[0]))
    for w, s_x, s_z in zip(weights, sigmas_pred, sigmas_z):
        Tc += w * np.outer(state_residual(s_x, x_pred), radar_residual(s_z, z_pred))

    SI = invert_innovation_covariance(S, max_condition_number)
    K = Tc @ SI

    y = radar_residual(z, z_pred)
    x_new = x_pred + K @ y
    P_new = P_pred - K @ S @ K.T

    return UpdateResult(x=x_new, P=P_new, innovation=y, S=S, K=K, nis=float(y @ SI @ y))
