"""
Filters Package

This package contains the CTRV Unscented Kalman Filter that fuses lidar and radar measurements,
together with the sigma point, motion model and measurement update building blocks it is made of.
"""

# Base classes and configuration
from .base_kalman_filter import BaseKalmanFilter, Belief, UKFConfig

# Building blocks
from .sigma_points import (
    normalize_angle,
    normalize_angle_component,
    compute_weights,
    generate_augmented_sigma_points,
    predict_mean_and_covariance,
)
from .ctrv_model import ctrv_transition, propagate_sigma_points
from .measurement_models import UpdateResult, h_radar, linear_update, lidar_update, radar_update

# Filter implementations
from .ctrv_unscented_kalman_filter import CTRVUnscentedKalmanFilter

__all__ = [
    # Base classes
    'BaseKalmanFilter',
    'Belief',
    'UKFConfig',

    # Building blocks
    'normalize_angle',
    'normalize_angle_component',
    'compute_weights',
    'generate_augmented_sigma_points',
    'predict_mean_and_covariance',
    'ctrv_transition',
    'propagate_sigma_points',
    'UpdateResult',
    'h_radar',
    'linear_update',
    'lidar_update',
    'radar_update',

    # Filter implementations
    'CTRVUnscentedKalmanFilter',
]
