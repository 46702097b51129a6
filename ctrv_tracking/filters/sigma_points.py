import numpy as np
import scipy.linalg
from filterpy.kalman import unscented_transform

from ctrv_tracking.errors import NumericSingularityError

# State: [px, py, v, yaw, yaw_rate]
STATE_DIM = 5
# Augmented state: [px, py, v, yaw, yaw_rate, nu_a, nu_yawdd]
AUGMENTED_DIM = 7
N_SIGMA = 2 * AUGMENTED_DIM + 1

YAW_INDEX = 3
BEARING_INDEX = 1


def normalize_angle(angle):
    """
    Wraps an angle (or an array of angles) into (-pi, pi].
    Angles that are already inside the interval are returned untouched.
    """
    angle = np.asarray(angle, dtype=float)
    wrapped = np.pi - np.mod(np.pi - angle, 2.0 * np.pi)
    # np.mod can round up to exactly 2*pi for tiny negative inputs
    wrapped = np.where(wrapped <= -np.pi, wrapped + 2.0 * np.pi, wrapped)
    result = np.where((angle > -np.pi) & (angle <= np.pi), angle, wrapped)
    if result.ndim == 0:
        return float(result)
    return result


def normalize_angle_component(vector: np.ndarray, index: int) -> np.ndarray:
    """
    Returns a copy of `vector` whose `index` component is wrapped into (-pi, pi].
    Works on a single vector or on a stack of row vectors.
    """
    out = np.array(vector, dtype=float, copy=True)
    out[..., index] = normalize_angle(out[..., index])
    return out


def state_residual(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Residual between two CTRV states, with the yaw difference wrapped."""
    return normalize_angle_component(np.subtract(a, b), YAW_INDEX)


def radar_residual(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Residual between two radar measurements, with the bearing difference wrapped."""
    return normalize_angle_component(np.subtract(a, b), BEARING_INDEX)


def weighted_mean_with_angle(sigmas: np.ndarray, weights: np.ndarray, angle_index: int) -> np.ndarray:
    """
    Weighted mean of sigma point rows. The `angle_index` component is averaged on the
    circle, atan2(sum w_i sin a_i, sum w_i cos a_i), so points on both sides of the
    +-pi seam average to an angle near the seam instead of near zero.
    """
    sigmas = np.asarray(sigmas, dtype=float)
    mean = np.dot(weights, sigmas)
    angles = sigmas[:, angle_index]
    mean[angle_index] = np.arctan2(np.dot(weights, np.sin(angles)), np.dot(weights, np.cos(angles)))
    return mean


def state_mean(sigmas: np.ndarray, weights: np.ndarray) -> np.ndarray:
    """Weighted mean of CTRV state sigma points, circular in yaw."""
    return weighted_mean_with_angle(sigmas, weights, YAW_INDEX)


def radar_mean(sigmas: np.ndarray, weights: np.ndarray) -> np.ndarray:
    """Weighted mean of radar measurement sigma points, circular in bearing."""
    return weighted_mean_with_angle(sigmas, weights, BEARING_INDEX)


def spreading_parameter(n_aug: int = AUGMENTED_DIM) -> float:
    return 3.0 - n_aug


def compute_weights(n_aug: int = AUGMENTED_DIM) -> np.ndarray:
    """
    Sigma point weights: w_0 = lambda / (lambda + n_aug), w_i = 1 / (2 (lambda + n_aug)).
    The same weights are used for the mean and the covariance.
    """
    lam = spreading_parameter(n_aug)
    weights = np.full(2 * n_aug + 1, 0.5 / (lam + n_aug))
    weights[0] = lam / (lam + n_aug)
    return weights


def augment(x: np.ndarray, P: np.ndarray, std_accel: float, std_yaw_accel: float):
    """
    Builds the augmented mean [x, 0, 0] and covariance blockdiag(P, std_accel^2, std_yaw_accel^2).
    """
    x = np.asarray(x, dtype=float).reshape(-1)
    P = np.asarray(P, dtype=float)
    if x.shape != (STATE_DIM,):
        raise ValueError(f"x must have {STATE_DIM} elements, got {x.shape}")
    if P.shape != (STATE_DIM, STATE_DIM):
        raise ValueError(f"P must be ({STATE_DIM}, {STATE_DIM}), got {P.shape}")

    x_aug = np.zeros(AUGMENTED_DIM)
    x_aug[:STATE_DIM] = x

    P_aug = np.zeros((AUGMENTED_DIM, AUGMENTED_DIM))
    P_aug[:STATE_DIM, :STATE_DIM] = P
    P_aug[5, 5] = std_accel ** 2
    P_aug[6, 6] = std_yaw_accel ** 2
    return x_aug, P_aug


def cholesky_lower(P: np.ndarray) -> np.ndarray:
    """
    Lower triangular square root of P.
    Raises NumericSingularityError when P is not positive definite or holds non-finite values.
    """
    if not np.all(np.isfinite(P)):
        raise NumericSingularityError("Covariance contains non-finite values")
    try:
        return scipy.linalg.cholesky(P, lower=True)
    except np.linalg.LinAlgError as e:
        raise NumericSingularityError(f"Covariance is not positive definite: {e}") from e


def generate_sigma_points(mean: np.ndarray, cov: np.ndarray) -> np.ndarray:
    """
    Generates 2n+1 sigma points around `mean`, one per row:
        row 0       : mean
        rows 1..n   : mean + sqrt(lambda + n) * L[:, i]
        rows n+1..2n: mean - sqrt(lambda + n) * L[:, i]
    with L the lower Cholesky factor of `cov` and lambda = 3 - n.
    """
    mean = np.asarray(mean, dtype=float).reshape(-1)
    n = mean.shape[0]
    L = cholesky_lower(np.asarray(cov, dtype=float))
    spread = np.sqrt(spreading_parameter(n) + n) * L

    sigmas = np.empty((2 * n + 1, n))
    sigmas[0] = mean
    sigmas[1:n + 1] = mean + spread.T
    sigmas[n + 1:] = mean - spread.T
    return sigmas


def generate_augmented_sigma_points(x: np.ndarray, P: np.ndarray, std_accel: float,
                                    std_yaw_accel: float) -> np.ndarray:
    """
    Augments the state with the two process noise terms and generates the 15 augmented sigma points.

    :return: array of shape (15, 7)
    """
    x_aug, P_aug = augment(x, P, std_accel, std_yaw_accel)
    return generate_sigma_points(x_aug, P_aug)


def predict_mean_and_covariance(sigmas_pred: np.ndarray, weights: np.ndarray):
    """
    Recovers the predicted state mean and covariance from the propagated sigma points.
    The yaw mean is circular and the yaw component of every residual is wrapped
    before it enters the covariance.

    :param sigmas_pred: array of shape (15, 5)
    :param weights: array of shape (15,)
    :return: (x_pred, P_pred)
    """
    return unscented_transform(sigmas_pred, weights, weights, mean_fn=state_mean, residual_fn=state_residual)
