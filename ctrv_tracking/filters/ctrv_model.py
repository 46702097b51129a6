import numpy as np

# Below this yaw rate the arc equations divide by ~0, so straight-line motion is used instead
YAW_RATE_EPS = 1e-3


def ctrv_transition(point: np.ndarray, dt: float) -> np.ndarray:
    """
    Constant Turn Rate and Velocity (CTRV) transition of a single augmented point.
    Augmented state: [px, py, v, yaw, yaw_rate, nu_a, nu_yawdd]
    Returned state:  [px, py, v, yaw, yaw_rate]

    Speed and yaw rate are constant between updates. nu_a (longitudinal acceleration)
    and nu_yawdd (yaw acceleration) enter as noise held constant over dt.
    """
    px, py, v, yaw, yawd, nu_a, nu_yawdd = point

    if abs(yawd) > YAW_RATE_EPS:
        px_p = px + v / yawd * (np.sin(yaw + yawd * dt) - np.sin(yaw))
        py_p = py + v / yawd * (np.cos(yaw) - np.cos(yaw + yawd * dt))
    else:
        px_p = px + v * dt * np.cos(yaw)
        py_p = py + v * dt * np.sin(yaw)

    v_p = v
    yaw_p = yaw + yawd * dt
    yawd_p = yawd

    # process noise
    dt2 = dt * dt
    px_p += 0.5 * nu_a * dt2 * np.cos(yaw)
    py_p += 0.5 * nu_a * dt2 * np.sin(yaw)
    v_p += nu_a * dt
    yaw_p += 0.5 * nu_yawdd * dt2
    yawd_p += nu_yawdd * dt

    return np.array([px_p, py_p, v_p, yaw_p, yawd_p])


def propagate_sigma_points(sigmas_aug: np.ndarray, dt: float) -> np.ndarray:
    """
    Pushes every augmented sigma point through the CTRV model.

    :param sigmas_aug: array of shape (2 * n_aug + 1, 7), one sigma point per row
    :param dt: elapsed time in seconds, must be non-negative
    :return: array of shape (2 * n_aug + 1, 5)
    """
    if dt < 0:
        raise ValueError(f"dt must be non-negative, got {dt}")
    sigmas_aug = np.asarray(sigmas_aug, dtype=float)
    if sigmas_aug.ndim != 2 or sigmas_aug.shape[1] != 7:
        raise ValueError(f"Expected augmented sigma points with shape (N, 7), got {sigmas_aug.shape}")

    sigmas_pred = np.empty((sigmas_aug.shape[0], 5))
    for i, point in enumerate(sigmas_aug):
        sigmas_pred[i] = ctrv_transition(point, dt)
    return sigmas_pred
