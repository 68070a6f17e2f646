"""
Statistical primitives shared by every engine component
"""
import numpy as np
import pandas as pd
from typing import Dict, Mapping, Optional, Sequence

from ..exceptions import ConfigurationError, InvalidInputError


def as_array(values, name: str = "series", min_length: int = 2) -> np.ndarray:
    """Validate a numeric series and return it as a float array"""
    if values is None:
        raise InvalidInputError(f"{name} is required", field=name)
    arr = np.asarray(values, dtype=float)
    if arr.ndim != 1:
        raise InvalidInputError(f"{name} must be one-dimensional", field=name)
    if len(arr) < min_length:
        raise InvalidInputError(
            f"{name} needs at least {min_length} points, got {len(arr)}", field=name
        )
    if not np.all(np.isfinite(arr)):
        raise InvalidInputError(f"{name} contains NaN or infinite values", field=name)
    return arr


def as_pair(first, second, names=("series1", "series2"), min_length: int = 2):
    """Validate two series of matching length"""
    a = as_array(first, names[0], min_length)
    b = as_array(second, names[1], min_length)
    if len(a) != len(b):
        raise InvalidInputError(
            f"{names[0]} and {names[1]} differ in length ({len(a)} vs {len(b)})",
            field=names[1],
        )
    return a, b


def mean(values) -> float:
    """Arithmetic mean"""
    return float(np.mean(as_array(values, min_length=1)))


def variance(values, ddof: int = 0) -> float:
    """Variance (population by default)"""
    arr = as_array(values, min_length=max(2, ddof + 1))
    return float(np.var(arr, ddof=ddof))


def std_dev(values, ddof: int = 0) -> float:
    """Standard deviation (population by default)"""
    return float(np.sqrt(variance(values, ddof=ddof)))


def covariance(first, second, ddof: int = 1) -> float:
    """Covariance (sample by default)"""
    a, b = as_pair(first, second)
    return float(np.dot(a - a.mean(), b - b.mean()) / (len(a) - ddof))


def correlation(first, second) -> float:
    """Pearson correlation, 0 when either series has zero variance"""
    a, b = as_pair(first, second)
    return pearson(a, b)


def pearson(a: np.ndarray, b: np.ndarray) -> float:
    # Same reduction for all three terms keeps corr(a, a) exactly 1
    da = a - a.mean()
    db = b - b.mean()
    numerator = np.dot(da, db)
    denominator = np.sqrt(np.dot(da, da) * np.dot(db, db))
    if denominator == 0:
        return 0.0
    return float(np.clip(numerator / denominator, -1.0, 1.0))


def returns_frame(assets: Sequence[str], returns: Mapping[str, Sequence[float]]) -> pd.DataFrame:
    """Align per-asset return series into a DataFrame (columns = assets)"""
    if len(assets) == 0:
        raise InvalidInputError("At least one asset is required", field="assets")
    columns = {}
    for asset in assets:
        if asset not in returns:
            raise InvalidInputError(f"No return series for {asset}", field="returns")
        columns[asset] = as_array(returns[asset], name=f"returns[{asset}]")
    lengths = {len(v) for v in columns.values()}
    if len(lengths) > 1:
        raise InvalidInputError("Return series differ in length", field="returns")
    return pd.DataFrame(columns, columns=list(assets))


def covariance_matrix(assets: Sequence[str], returns: Mapping[str, Sequence[float]],
                      ddof: int = 1) -> pd.DataFrame:
    """Covariance matrix of aligned return series"""
    frame = returns_frame(assets, returns)
    return frame.cov(ddof=ddof)


def correlation_matrix(assets: Sequence[str],
                       correlations: Optional[Mapping[str, Mapping[str, float]]]) -> np.ndarray:
    """
    Build a dense correlation matrix from a nested symbol mapping.

    Missing pairs default to 0, the diagonal is 1, and either orientation
    (a->b or b->a) is accepted. Symbols the mapping references that are not in
    ``assets`` are rejected.
    """
    if isinstance(correlations, pd.DataFrame):
        correlations = correlations.to_dict()
    correlations = correlations or {}

    known = set(assets)
    for outer, row in correlations.items():
        if outer not in known:
            raise InvalidInputError(f"Unknown symbol in correlation map: {outer}", field="correlations")
        for inner in row:
            if inner not in known:
                raise InvalidInputError(f"Unknown symbol in correlation map: {inner}", field="correlations")

    n = len(assets)
    matrix = np.eye(n)
    for i, a in enumerate(assets):
        for j, b in enumerate(assets):
            if i == j:
                continue
            value = correlations.get(a, {}).get(b)
            if value is None:
                value = correlations.get(b, {}).get(a, 0.0)
            if not -1.0 <= value <= 1.0:
                raise ConfigurationError(
                    f"Correlation {a}/{b} outside [-1, 1]: {value}", field="correlations"
                )
            matrix[i, j] = value
    return matrix


def box_muller(rng: np.random.Generator, size) -> np.ndarray:
    """Standard normal draws via the Box-Muller transform"""
    u1 = 1.0 - rng.random(size)  # (0, 1], keeps log finite
    u2 = rng.random(size)
    return np.sqrt(-2.0 * np.log(u1)) * np.cos(2.0 * np.pi * u2)
