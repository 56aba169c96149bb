"""
Shared numerical helpers for streaming statistics.

This module provides the numba-compiled kernels used by the pipeline to keep
running statistics over a stream without retaining its history:

- Range computation ignoring NaN values (domain inference)
- Welford updates of running means and variances
- Accumulation of squared deviations between original and anonymized values

All kernels operate on float64 numpy arrays, one slot per attribute, and
update their accumulators in place.
"""

import numba
import numpy as np


@numba.jit(nopython=True)
def min_max(x: np.ndarray) -> tuple[float, float]:
    """
    Find the minimum and maximum values of an array, ignoring NaN values.

    This function computes both minimum and maximum values in a single pass
    through the array.

    Parameters
    ----------
    x : np.ndarray
        Input array of numerical values.

    Returns
    -------
    Tuple[float, float]
        A tuple containing (minimum, maximum) values from the array.
        Returns (np.nan, np.nan) if the array is empty or contains only NaN values.

    Examples
    --------
    >>> min_max(np.array([1.0, 2.0, 3.0, 4.0, 5.0]))
    (1.0, 5.0)
    >>> min_max(np.array([1.0, 2.0, np.nan, 4.0, 5.0]))
    (1.0, 5.0)
    >>> min_max(np.array([np.nan, np.nan]))
    (nan, nan)
    """
    x = x[~np.isnan(x)]
    if len(x) == 0:
        return (np.nan, np.nan)
    maximum = x[0]
    minimum = x[0]
    for i in x[1:]:
        if i > maximum:
            maximum = i
        elif i < minimum:
            minimum = i
    return (minimum, maximum)


@numba.jit(nopython=True)
def welford_update(
    counts: np.ndarray, means: np.ndarray, m2s: np.ndarray, values: np.ndarray
) -> None:
    """
    Fold one observation per attribute into running means and variances.

    Parameters
    ----------
    counts : np.ndarray
        Number of non-NaN values seen so far, per attribute. Updated in place.
    means : np.ndarray
        Running means, per attribute. Updated in place.
    m2s : np.ndarray
        Running sums of squared differences from the mean, per attribute.
        Updated in place; the population variance is ``m2s / counts``.
    values : np.ndarray
        The new observation, one value per attribute. NaN values are skipped.

    Notes
    -----
    Welford's online algorithm is numerically stable and needs O(1) memory per
    attribute, regardless of the stream length.
    """
    for j in range(len(values)):
        x = values[j]
        if np.isnan(x):
            continue
        counts[j] += 1.0
        delta = x - means[j]
        means[j] += delta / counts[j]
        m2s[j] += delta * (x - means[j])


@numba.jit(nopython=True)
def accumulate_squared_deviation(
    sums: np.ndarray, counts: np.ndarray, originals: np.ndarray, anonymized: np.ndarray
) -> None:
    """
    Add the squared deviation between an original and an anonymized observation.

    Parameters
    ----------
    sums : np.ndarray
        Running sums of squared deviations, per attribute. Updated in place.
    counts : np.ndarray
        Number of deviations accumulated, per attribute. Updated in place.
    originals : np.ndarray
        Original values, one per attribute.
    anonymized : np.ndarray
        Anonymized values, one per attribute.

    Notes
    -----
    Attributes where either value is NaN are skipped: a value that is missing
    in the original stays missing after anonymization and carries no distortion.
    """
    for j in range(len(originals)):
        x = originals[j]
        y = anonymized[j]
        if np.isnan(x) or np.isnan(y):
            continue
        sums[j] += (x - y) * (x - y)
        counts[j] += 1.0


def normalized_mean_squared_deviation(
    sums: np.ndarray, counts: np.ndarray, variance_counts: np.ndarray, m2s: np.ndarray
) -> float:
    """
    Average, across attributes, of the mean squared deviation over the variance.

    Parameters
    ----------
    sums : np.ndarray
        Sums of squared deviations, per attribute.
    counts : np.ndarray
        Number of deviations in ``sums``, per attribute.
    variance_counts : np.ndarray
        Number of values in the running variance, per attribute.
    m2s : np.ndarray
        Running sums of squared differences from the mean, per attribute.

    Returns
    -------
    float
        The normalized mean squared deviation, >= 0. Attributes with no
        deviations or zero variance are skipped; returns 0.0 when all are skipped.
    """
    total, n_attributes = 0.0, 0
    for j in range(len(sums)):
        if counts[j] == 0 or variance_counts[j] == 0:
            continue
        variance = m2s[j] / variance_counts[j]
        if variance <= 0:
            continue
        total += (sums[j] / counts[j]) / variance
        n_attributes += 1
    return float(total / n_attributes) if n_attributes > 0 else 0.0
