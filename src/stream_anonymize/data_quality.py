"""
Batch data quality metrics for a finished anonymization run.

The running estimates of :mod:`stream_anonymize.evaluation` only keep O(1)
state per attribute. When the emitted pairs are retained anyway (for instance
by an :class:`~stream_anonymize.task.AnonymizeCallbacks` that collects them),
this module measures how well the anonymized stream preserves the structure of
the original one:

- Pearson's correlation coefficient between original and anonymized values of
  each numerical quasi-identifier
- Normalized mutual information between original and anonymized values of each
  categorical quasi-identifier
- Average equivalence class size over the anonymized quasi-identifiers

Pearson's and NMI values are in [0, 1], higher meaning better preservation.
"""

from collections.abc import Iterable
from typing import Any

import numpy as np
import pandas as pd
from scipy.stats import pearsonr
from sklearn.metrics import normalized_mutual_info_score

from stream_anonymize.constants import NOT_DEFINED_NA
from stream_anonymize.pandas_utils import pairs_to_df
from stream_anonymize.records import RecordPair, Schema

_MISSING_CATEGORY = "__MISSING_CATEGORY"


def compute_pearsons_correlation_coefficients(
    pairs_df: pd.DataFrame,
    qids: list[str],
    join_suffix_orig: str = "_orig",
    join_suffix_anon: str = "_anon",
) -> dict[str, float]:
    """
    Compute Pearson's correlation coefficient for numerical quasi-identifiers.

    Parameters
    ----------
    pairs_df : pd.DataFrame
        Output of :func:`~stream_anonymize.pandas_utils.pairs_to_df`.
    qids : List[str]
        Numerical quasi-identifier names.
    join_suffix_orig : str, default="_orig"
        Suffix of the columns holding original values.
    join_suffix_anon : str, default="_anon"
        Suffix of the columns holding anonymized values.

    Returns
    -------
    Dict[str, float]
        A dictionary mapping QID names to max(0, rho).

    Notes
    -----
    Pairs where either value is missing are dropped. Edge cases:

    - When all values are identical and unchanged: Returns 1.0
    - When all original values are identical but changed: Returns 0.0
    - When original values vary but all anonymized values are identical: Returns 0.0
    - When there are fewer than two pairs left: Returns NOT_DEFINED_NA
    """
    pearsons: dict[str, float] = {}
    for qid in qids:
        x = pairs_df[f"{qid}{join_suffix_orig}"].to_numpy(dtype=np.float64)
        y = pairs_df[f"{qid}{join_suffix_anon}"].to_numpy(dtype=np.float64)
        x_or_y_nan = np.isnan(x) | np.isnan(y)
        x, y = x[~x_or_y_nan], y[~x_or_y_nan]

        if len(x) < 2:
            corr = NOT_DEFINED_NA
        elif len(set(x)) == 1 and len(set(y)) == 1:
            # a single value: preserved only if unchanged
            corr = 1.0 if set(x) == set(y) else 0.0
        elif len(set(y)) == 1 or len(set(x)) == 1:
            corr = 0.0
        else:
            corr, _ = pearsonr(x, y)
            corr = max(0.0, float(corr))  # values < 0 are considered 0.0
        pearsons[qid] = corr
    return pearsons


def compute_normalized_mutual_information(
    pairs_df: pd.DataFrame,
    qids: list[str],
    join_suffix_orig: str = "_orig",
    join_suffix_anon: str = "_anon",
) -> dict[str, float]:
    """
    Compute the normalized mutual information for categorical quasi-identifiers.

    Parameters
    ----------
    pairs_df : pd.DataFrame
        Output of :func:`~stream_anonymize.pandas_utils.pairs_to_df`.
    qids : List[str]
        Categorical quasi-identifier names.
    join_suffix_orig : str, default="_orig"
        Suffix of the columns holding original values.
    join_suffix_anon : str, default="_anon"
        Suffix of the columns holding anonymized values.

    Returns
    -------
    Dict[str, float]
        A dictionary mapping QID names to the NMI between original and anonymized
        values, NOT_DEFINED_NA if pairs_df is empty.

    Notes
    -----
    Missing values are treated as one more category. When the original values
    hold a single category, the NMI is 1.0 if the anonymized values do too and
    0.0 otherwise.
    """
    nmis: dict[str, float] = {}
    for qid in qids:
        if len(pairs_df) == 0:
            nmis[qid] = NOT_DEFINED_NA
            continue
        x = _as_labels(pairs_df[f"{qid}{join_suffix_orig}"])
        y = _as_labels(pairs_df[f"{qid}{join_suffix_anon}"])
        nmis[qid] = float(normalized_mutual_info_score(x, y))
    return nmis


def compute_average_equivalence_class_metric(
    pairs_df: pd.DataFrame, qids: list[str], join_suffix_anon: str = "_anon"
) -> float:
    """
    Compute the average equivalence class metric for anonymized data.

    The average size of the groups of anonymized records sharing the same
    quasi-identifier values. Note it isn't normalized by k, and higher values
    mean more information loss.

    Parameters
    ----------
    pairs_df : pd.DataFrame
        Output of :func:`~stream_anonymize.pandas_utils.pairs_to_df`.
    qids : List[str]
        Quasi-identifier names defining the equivalence classes.
    join_suffix_anon : str, default="_anon"
        Suffix of the columns holding anonymized values.

    Returns
    -------
    float
        :math:`|D*|`/:math:`|E*|`, or NOT_DEFINED_NA if there are no records or QIDs.

    References
    ----------
    LeFevre, K., Dewitt, D. J. & Ramakrishnan, R.
    Mondrian Multidimensional K-Anonymity. 22nd Int Conf Data Eng Icde'06 1-11 (2006)
    doi:10.1109/icde.2006.101.
    """
    if len(pairs_df) == 0 or len(qids) == 0:
        return NOT_DEFINED_NA
    anon_qids = [f"{qid}{join_suffix_anon}" for qid in qids]
    qid_records_df = pairs_df[anon_qids]
    return float(len(qid_records_df) / qid_records_df.groupby(anon_qids, dropna=False).ngroups)


def compute_data_quality_metrics(schema: Schema, pairs: Iterable[RecordPair]) -> dict[str, Any]:
    """
    Compute all batch data quality metrics of a set of emitted pairs.

    Parameters
    ----------
    schema : Schema
        Schema of the stream.
    pairs : Iterable[RecordPair]
        Emitted pairs.

    Returns
    -------
    Dict[str, Any]
        ``pearsons`` and ``nmi`` map QID names to their metric; ``average_equivalence_class``
        is a float.
    """
    pairs_df = pairs_to_df(schema, pairs)
    numerical_qids = [schema.attributes[idx].name for idx in schema.numerical_qid_indices]
    categorical_qids = [qid for qid in schema.qid_names if qid not in numerical_qids]
    return {
        "pearsons": compute_pearsons_correlation_coefficients(pairs_df, numerical_qids),
        "nmi": compute_normalized_mutual_information(pairs_df, categorical_qids),
        "average_equivalence_class": compute_average_equivalence_class_metric(
            pairs_df, schema.qid_names
        ),
    }


def _as_labels(values: pd.Series) -> list[str]:
    return [_MISSING_CATEGORY if pd.isna(value) else str(value) for value in values]
