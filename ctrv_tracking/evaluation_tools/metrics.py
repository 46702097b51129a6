from typing import Sequence

import numpy as np
from scipy.stats import chi2


def state_to_cartesian(x: np.ndarray) -> np.ndarray:
    """
    Converts CTRV states [px, py, v, yaw, yaw_rate] to Cartesian [px, py, vx, vy].
    Accepts a single state of shape (5,) or a stack of shape (T, 5).
    """
    x = np.asarray(x, dtype=float)
    if x.shape[-1] != 5:
        raise ValueError(f"Expected CTRV states with 5 components, got shape {x.shape}")
    px, py, v, yaw = x[..., 0], x[..., 1], x[..., 2], x[..., 3]
    return np.stack([px, py, v * np.cos(yaw), v * np.sin(yaw)], axis=-1)


def calculate_rmse(estimates, ground_truth) -> np.ndarray:
    """
    Root mean squared error per component.

    :param estimates: (T, d) estimated vectors
    :param ground_truth: (T, d) true vectors
    :return: (d,) RMSE of every component
    """
    estimates = np.atleast_2d(np.asarray(estimates, dtype=float))
    ground_truth = np.atleast_2d(np.asarray(ground_truth, dtype=float))
    if estimates.size == 0:
        raise ValueError("Cannot compute the RMSE of an empty sequence")
    if estimates.shape != ground_truth.shape:
        raise ValueError(f"Shape mismatch: estimates {estimates.shape}, ground truth {ground_truth.shape}")
    return np.sqrt(np.mean((estimates - ground_truth) ** 2, axis=0))


def nis_threshold(dof: int, confidence: float = 0.95) -> float:
    """Chi-square value that a consistent filter's NIS stays below with probability `confidence`."""
    if not 0 < confidence < 1:
        raise ValueError("confidence must be between 0 and 1")
    return float(chi2.ppf(confidence, dof))


def nis_consistency(nis_values: Sequence[float], dof: int, confidence: float = 0.95) -> float:
    """
    Fraction of NIS values below the chi-square threshold. For a consistent filter it should
    be close to `confidence` (3 degrees of freedom for radar, 2 for lidar).
    """
    nis_values = np.asarray([v for v in nis_values if v is not None], dtype=float)
    if nis_values.size == 0:
        raise ValueError("No NIS values given")
    return float(np.mean(nis_values <= nis_threshold(dof, confidence)))
