from .stats import (
    as_array, as_pair, mean, variance, std_dev, covariance, correlation, pearson,
    returns_frame, covariance_matrix, correlation_matrix, box_muller
)
from .logger import setup_logger

__all__ = [
    'as_array', 'as_pair', 'mean', 'variance', 'std_dev', 'covariance', 'correlation',
    'pearson', 'returns_frame', 'covariance_matrix', 'correlation_matrix', 'box_muller',
    'setup_logger'
]
