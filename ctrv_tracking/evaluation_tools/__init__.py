from .metrics import state_to_cartesian, calculate_rmse, nis_threshold, nis_consistency

__all__ = [
    'state_to_cartesian',
    'calculate_rmse',
    'nis_threshold',
    'nis_consistency',
]
