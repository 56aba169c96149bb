"""
Total order and partitioning of a buffer of records.

Buffered records are ranked by a strict total order: lexicographic over the
projection of quasi-identifying attributes (schema order, missing values last),
with the arrival position as the final tie-break. The ranked sequence is then
cut into contiguous clusters of k records, which keeps records that are close
under the order in the same cluster.
"""

from typing import cast

import numpy as np
import pandas as pd


def partition_sizes(n: int, k: int) -> list[int]:
    """
    Sizes of the contiguous clusters used to partition n ranked records.

    Parameters
    ----------
    n : int
        Number of records; >= 0.
    k : int
        Target cluster size; >= 1.

    Returns
    -------
    List[int]
        Cluster sizes summing to n. Every cluster has exactly k records except
        the last one, which absorbs a remainder smaller than k and thus has a
        size in [k, 2k-1]. When n < k there is a single cluster of n records.

    Examples
    --------
    >>> partition_sizes(10, 3)
    [3, 3, 4]
    >>> partition_sizes(2, 3)
    [2]
    >>> partition_sizes(0, 3)
    []
    """
    assert k >= 1, f"k ({k}) must be >= 1"
    if n <= 0:
        return []
    n_clusters = max(n // k, 1)
    sizes = [k] * n_clusters
    sizes[-1] = n - k * (n_clusters - 1)
    return sizes


def rank_records(buffer_df: pd.DataFrame, qids: list[str], position_col: str) -> np.ndarray:
    """
    Rank the rows of a buffer under the total order.

    Parameters
    ----------
    buffer_df : pd.DataFrame
        Buffered records, one column per attribute plus position_col.
    qids : List[str]
        Quasi-identifying columns, in schema order.
    position_col : str
        Column holding the unique arrival position of each row.

    Returns
    -------
    np.ndarray
        Arrival positions, sorted by rank.
    """
    # position_col is unique, so the order is strict even when all QIDs tie
    ranked_df = buffer_df.sort_values(
        by=list(qids) + [position_col], kind="mergesort", na_position="last"
    )
    return cast(pd.Series, ranked_df[position_col]).to_numpy()


def assign_clusters(buffer_df: pd.DataFrame, qids: list[str], position_col: str, k: int) -> np.ndarray:
    """
    Assign each buffered record to a cluster.

    Parameters
    ----------
    buffer_df : pd.DataFrame
        Buffered records, one column per attribute plus position_col, where
        position_col holds 0..n-1.
    qids : List[str]
        Quasi-identifying columns, in schema order.
    position_col : str
        Column holding the arrival position of each row.
    k : int
        Target cluster size.

    Returns
    -------
    np.ndarray
        Cluster label (0-based, increasing with rank) for each arrival position.
    """
    ranked_positions = rank_records(buffer_df, qids, position_col)
    labels = np.empty(len(ranked_positions), dtype=np.int64)
    start = 0
    for label, size in enumerate(partition_sizes(len(ranked_positions), k)):
        labels[ranked_positions[start : start + size]] = label
        start += size
    return labels
