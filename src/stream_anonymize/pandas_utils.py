"""
Pandas utility functions.

We call this pandas_utils instead of pandas to avoid mistakes in import statements.
"""

from collections.abc import Iterable

import numpy as np
import pandas as pd

from stream_anonymize.constants import MAX_RANDOM_STATE
from stream_anonymize.records import Record, RecordPair, Schema


def get_temp_col(
    input_df: pd.DataFrame,
    col_prefix: str = "tmp_col_",
    random_seed: int = 42,
    max_attempts: int = 10_000,
) -> str:
    """
    Get a unique temporary column name not in the given dataframe.

    Parameters
    ----------
    input_df : pd.DataFrame
        DataFrame to check for column name conflicts.
    col_prefix : str, optional
        Prefix for column name, defaults to ``tmp_col_``.
    random_seed : int, optional
        Random seed for reproducible column names, defaults to 42.
    max_attempts : int, optional
        Maximum number of attempts to find a unique name, defaults to 10,000.

    Returns
    -------
    str
        Unique column name not present in input_df.

    Raises
    ------
    RuntimeError
        If unable to generate a unique column name after max_attempts.
    """
    cols = set(str(col_name) for col_name in input_df.columns)
    rng = np.random.default_rng(seed=random_seed)
    for _ in range(max_attempts):
        temp_col = f"{col_prefix}_{rng.integers(0, MAX_RANDOM_STATE)}"
        if temp_col not in cols:
            return temp_col
    raise RuntimeError(
        f"Unable to generate unique column name after {max_attempts} attempts. "
        f"DataFrame may have too many existing columns with prefix '{col_prefix}_'."
    )


def make_temp_position_col(input_df: pd.DataFrame, col_prefix: str = "position_") -> str:
    """
    Append a temporary column with row positions (0-indexed) to the dataframe.

    Parameters
    ----------
    input_df : pd.DataFrame
        DataFrame to modify in-place.
    col_prefix : str, optional
        Prefix for the column name.

    Returns
    -------
    str
        Name of the inserted column.
    """
    position_col = get_temp_col(input_df, col_prefix=col_prefix)
    input_df[position_col] = np.arange(len(input_df), dtype=np.int64)
    return position_col


def records_to_df(schema: Schema, records: Iterable[Record]) -> pd.DataFrame:
    """
    Build a dataframe with one row per record and one column per attribute.

    Parameters
    ----------
    schema : Schema
        Schema shared by the records.
    records : Iterable[Record]
        Records, in the order the rows should appear.

    Returns
    -------
    pd.DataFrame
        Dataframe with a RangeIndex; numeric attributes are float64 columns and
        categorical attributes are object columns holding the record values as is.
    """
    df = pd.DataFrame([record.values for record in records], columns=schema.names, dtype=object)
    for attribute in schema.attributes:
        if attribute.is_numeric:
            df[attribute.name] = pd.to_numeric(df[attribute.name], errors="coerce").astype(
                np.float64
            )
    return df


def pairs_to_df(
    schema: Schema,
    pairs: Iterable[RecordPair],
    join_suffix_orig: str = "_orig",
    join_suffix_anon: str = "_anon",
) -> pd.DataFrame:
    """
    Build a side-by-side dataframe of original and anonymized values.

    Parameters
    ----------
    schema : Schema
        Schema shared by the records.
    pairs : Iterable[RecordPair]
        Pairs, in emission order.
    join_suffix_orig : str, default="_orig"
        Suffix appended to the columns holding original values.
    join_suffix_anon : str, default="_anon"
        Suffix appended to the columns holding anonymized values.

    Returns
    -------
    pd.DataFrame
        One row per pair, with the original columns, the anonymized columns and
        ``cluster_id`` / ``cluster_size`` columns.
    """
    pairs = list(pairs)
    orig_df = records_to_df(schema, (pair.original for pair in pairs)).add_suffix(
        join_suffix_orig
    )
    anon_df = records_to_df(schema, (pair.anonymized for pair in pairs)).add_suffix(
        join_suffix_anon
    )
    df = pd.concat([orig_df, anon_df], axis="columns")
    df["cluster_id"] = [pair.cluster_id for pair in pairs]
    df["cluster_size"] = [pair.cluster_size for pair in pairs]
    return df
