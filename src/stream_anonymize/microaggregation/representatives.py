"""
Cluster representatives for microaggregation.

Every member of a cluster has its quasi-identifying values replaced by the
cluster representative:

- Numerical QIDs: the mean of the non-missing member values.
- Categorical QIDs: the mode of the non-missing member values, ties broken in
  favor of the value that arrived first.

Missing values are not imputed; a member with a missing QID value keeps it
missing.
"""

from typing import Any, cast

import numpy as np
import pandas as pd
from first import first  # type: ignore[import-untyped]

from stream_anonymize.records import Schema


def numerical_representative(values: pd.Series) -> float:
    """
    Mean of the non-missing values.

    Parameters
    ----------
    values : pd.Series
        Numerical member values of one cluster.

    Returns
    -------
    float
        The mean, or np.nan if every value is missing.
    """
    values = cast(pd.Series, values[~pd.isna(values)])
    if values.empty:
        return np.nan
    return float(values.mean())


def categorical_representative(values: pd.Series) -> Any:
    """
    Most frequent non-missing value, ties broken by earliest appearance.

    Parameters
    ----------
    values : pd.Series
        Categorical member values of one cluster, in arrival order.

    Returns
    -------
    Any
        The mode, or None if every value is missing.

    Examples
    --------
    >>> categorical_representative(pd.Series(["b", "a", "a", "b", "c"]))
    'b'
    """
    values = cast(pd.Series, values[~pd.isna(values)])
    if values.empty:
        return None
    counts = values.value_counts(sort=False).to_dict()
    max_count = max(counts.values())
    mode = first(value for value in values if counts[value] == max_count)
    if isinstance(mode, np.generic):
        return mode.item()
    return mode


def cluster_representatives(cluster_df: pd.DataFrame, schema: Schema) -> dict[int, Any]:
    """
    Compute the representative of every quasi-identifying attribute of a cluster.

    Parameters
    ----------
    cluster_df : pd.DataFrame
        Members of a single cluster, one column per schema attribute, rows in
        arrival order.
    schema : Schema
        Schema of the stream.

    Returns
    -------
    Dict[int, Any]
        Mapping from QID attribute index to the representative value.
    """
    idx_to_representative: dict[int, Any] = {}
    for idx in schema.qid_indices:
        attribute = schema.attributes[idx]
        values = cast(pd.Series, cluster_df[attribute.name])
        if attribute.is_numeric:
            idx_to_representative[idx] = numerical_representative(values)
        else:
            idx_to_representative[idx] = categorical_representative(values)
    return idx_to_representative
