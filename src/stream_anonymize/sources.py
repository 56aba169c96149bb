"""
Record sources feeding the anonymization pipeline.

A record source produces records on demand and exposes the schema shared by
all of them. How records are produced is up to the source; this module defines
the interface the pipeline relies on and an in-memory source that streams the
rows of a pandas DataFrame.
"""

import logging
from abc import ABCMeta, abstractmethod
from typing import Optional

import numpy as np
import pandas as pd

from stream_anonymize.exceptions import Exhausted
from stream_anonymize.records import Attribute, AttributeType, Record, Schema
from stream_anonymize.utils import min_max

ALLOWED_DTYPES_NUMERICAL = {np.dtype("int64"), np.dtype("int32"), np.dtype("float64")}
ALLOWED_DTYPES_CATEGORICAL = {np.dtype("object"), np.dtype("bool")}


class RecordSource(metaclass=ABCMeta):
    """
    Interface of a pull-based record source.
    """

    @property
    @abstractmethod
    def schema(self) -> Schema:
        pass

    @abstractmethod
    def has_more(self) -> bool:
        pass

    @abstractmethod
    def next_record(self) -> Record:
        """
        Return the next record.

        Raises
        ------
        Exhausted
            If ``has_more()`` is false.
        """

    @abstractmethod
    def restart(self) -> None:
        pass


def infer_schema(
    input_df: pd.DataFrame,
    qids: Optional[list[str]] = None,
    domains: Optional[dict[str, tuple[float, float]]] = None,
    infer_domains: bool = False,
    relation: str = "stream",
) -> Schema:
    """
    Infer a stream schema from the dtypes of a dataframe.

    Parameters
    ----------
    input_df : pd.DataFrame
        Dataframe whose columns are the stream attributes.
    qids : Optional[List[str]], default=None
        Quasi-identifying columns. If None, all columns are quasi-identifying.
    domains : Optional[Dict[str, Tuple[float, float]]], default=None
        Public (lower, upper) bounds of numeric columns.
    infer_domains : bool, default=False
        If True, numeric columns without an explicit domain get the range of
        their values in input_df. The domain is then derived from the private
        data itself, which weakens the differential privacy guarantee; only use
        this when the range is public knowledge anyway.
    relation : str, default="stream"
        Name of the stream.

    Returns
    -------
    Schema
        The inferred schema.

    Raises
    ------
    ValueError
        If a QID or domain column is not in input_df, or a column has an
        unsupported dtype.
    """
    cols = [str(col_name) for col_name in input_df.columns]
    qids = cols.copy() if qids is None else list(qids)
    for qid_col in qids:
        if qid_col not in cols:
            raise ValueError(f"QID col ({qid_col}) is not a column in the input dataframe")
    domains = dict(domains or {})
    for domain_col in domains:
        if domain_col not in cols:
            raise ValueError(f"Domain col ({domain_col}) is not a column in the input dataframe")

    attributes = []
    for col in cols:
        dtype = input_df[col].dtype
        if dtype in ALLOWED_DTYPES_NUMERICAL:
            attribute_type = AttributeType.NUMERIC
        elif dtype in ALLOWED_DTYPES_CATEGORICAL or isinstance(
            dtype, (pd.CategoricalDtype, pd.StringDtype)
        ):
            attribute_type = AttributeType.CATEGORICAL
        else:
            raise ValueError(f"Column '{col}' has unsupported dtype {dtype}")
        domain = domains.get(col, None)
        if domain is None and infer_domains and attribute_type == AttributeType.NUMERIC:
            minimum, maximum = min_max(input_df[col].to_numpy(dtype=np.float64))
            if not np.isnan(minimum):
                domain = (float(minimum), float(maximum))
        attributes.append(
            Attribute(
                name=col,
                attribute_type=attribute_type,
                quasi_identifying=col in qids,
                domain=domain,
            )
        )
    return Schema(tuple(attributes), relation=relation)


class DataFrameSource(RecordSource):
    """
    Stream the rows of a dataframe as records.

    Parameters
    ----------
    logger : logging.Logger
        Logger for recording source events.
    input_df : pd.DataFrame
        Rows to stream, in index order. The index itself is not streamed.
    qids : Optional[List[str]], default=None
        Quasi-identifying columns; all columns if None.
    domains : Optional[Dict[str, Tuple[float, float]]], default=None
        Public (lower, upper) bounds of numeric columns.
    infer_domains : bool, default=False
        See :func:`infer_schema`.
    relation : str, default="stream"
        Name of the stream.
    """

    def __init__(
        self,
        logger: logging.Logger,
        input_df: pd.DataFrame,
        qids: Optional[list[str]] = None,
        domains: Optional[dict[str, tuple[float, float]]] = None,
        infer_domains: bool = False,
        relation: str = "stream",
    ):
        self.logger = logger
        self._schema = infer_schema(
            input_df, qids=qids, domains=domains, infer_domains=infer_domains, relation=relation
        )
        is_numeric = [attribute.is_numeric for attribute in self._schema.attributes]
        self._rows = [
            tuple(_to_python(value, numeric) for value, numeric in zip(row, is_numeric))
            for row in input_df.itertuples(index=False, name=None)
        ]
        self._position = 0
        self.logger.info(
            "Streaming %d records with quasi-identifiers %s", len(self._rows), self._schema.qid_names
        )

    @property
    def schema(self) -> Schema:
        return self._schema

    def has_more(self) -> bool:
        return self._position < len(self._rows)

    def next_record(self) -> Record:
        if not self.has_more():
            raise Exhausted(f"Source exhausted after {len(self._rows)} records")
        row = self._rows[self._position]
        self._position += 1
        return Record(row)

    def restart(self) -> None:
        self._position = 0


def _to_python(value, numeric: bool):
    # missing categorical values are None, whatever the dtype used for them
    if not numeric and pd.isna(value):
        return None
    if isinstance(value, np.generic):
        return value.item()
    return value
