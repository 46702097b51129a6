from .route_generation import CTRVState, generate_ctrv_trajectory, generate_measurements

__all__ = [
    'CTRVState',
    'generate_ctrv_trajectory',
    'generate_measurements',
]
