"""Minimal shared utilities for stream testing."""

import logging
from hashlib import sha256
from typing import Optional

import numpy as np
import pandas as pd

from stream_anonymize.filters import PrivacyFilter, PullStatus
from stream_anonymize.records import RecordPair
from stream_anonymize.sources import DataFrameSource

_LOGGER = logging.getLogger(__name__)


def make_numerical_df(n: int, seed: int = 0) -> pd.DataFrame:
    """Build a dataframe of n records with two numerical QIDs and two non-QIDs.

    Parameters
    ----------
    n : int
        Number of records
    seed : int
        Seed for the generated values

    Returns
    -------
    pd.DataFrame
        Columns ``age`` and ``income`` (QIDs), ``zip`` and ``diagnosis`` (non-QIDs)
    """
    rng = np.random.default_rng(seed)
    return pd.DataFrame(
        {
            "age": rng.integers(18, 90, size=n).astype(np.int64),
            "income": rng.normal(50_000.0, 15_000.0, size=n),
            "zip": rng.integers(10_000, 99_999, size=n).astype(np.int64),
            "diagnosis": rng.choice(["flu", "cold", "covid"], size=n).astype(object),
        }
    )


def make_source(
    input_df: pd.DataFrame,
    qids: Optional[list[str]] = None,
    domains: Optional[dict[str, tuple[float, float]]] = None,
) -> DataFrameSource:
    return DataFrameSource(_LOGGER, input_df, qids=qids, domains=domains)


def hash_df(df: pd.DataFrame) -> int:
    """Generate a deterministic hash value for a DataFrame.

    This approach using SHA256 is deterministic across Python runs, unlike hash()
    which uses random seeding for security purposes.

    Parameters
    ----------
    df : pd.DataFrame
        DataFrame to hash

    Returns
    -------
    int
        Deterministic hash value for the DataFrame
    """
    hash_value = sha256(pd.util.hash_pandas_object(df, index=True).values)  # type: ignore[reportAttributeAccessIssue]  # hash_pandas_object is a real pandas.util function
    return int.from_bytes(hash_value.digest(), "big")


def drain(privacy_filter: PrivacyFilter) -> tuple[list[RecordPair], int]:
    """Poll a filter until it is exhausted.

    Parameters
    ----------
    privacy_filter : PrivacyFilter
        Filter to drain

    Returns
    -------
    Tuple[List[RecordPair], int]
        The emitted pairs, in order, and the number of PENDING results seen
    """
    pairs, n_pending = [], 0
    while privacy_filter.has_more():
        result = privacy_filter.next_pair()
        if result.status == PullStatus.READY:
            pairs.append(result.pair)
        elif result.status == PullStatus.PENDING:
            n_pending += 1
    assert privacy_filter.next_pair().status == PullStatus.EXHAUSTED
    return pairs, n_pending
