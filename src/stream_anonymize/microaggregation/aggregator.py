"""
Streaming microaggregation under a bounded lookahead buffer.

The :class:`TotalOrderMicroAggregator` accumulates incoming records in a buffer.
Once the buffer is full (or the stream is over), the buffered records are ranked
by a total order over their quasi-identifiers, cut into clusters of at least k
records, and every member's quasi-identifiers are replaced by the cluster
representative. The resulting (original, microaggregated) pairs are then handed
out one at a time, in arrival order.

Only one clustered batch is pending at a time: the buffer is clustered again
only after every pair of the previous batch was consumed. A caller that keeps
adding records without draining pairs gets :class:`CapacityExceeded` once the
buffer is full.
"""

import logging
from collections import deque
from typing import Optional

from stream_anonymize.exceptions import CapacityExceeded
from stream_anonymize.microaggregation.representatives import cluster_representatives
from stream_anonymize.microaggregation.total_order import assign_clusters
from stream_anonymize.pandas_utils import make_temp_position_col, records_to_df
from stream_anonymize.records import Record, RecordPair, Schema, is_missing


class TotalOrderMicroAggregator:
    """
    Buffered k-anonymous microaggregation of a record stream.

    Parameters
    ----------
    logger : logging.Logger
        Logger for recording clustering events.
    schema : Schema
        Schema of the stream; its quasi-identifying attributes are aggregated.
    k : int
        Minimum cluster size.
    buffer_size : int
        Number of records buffered before clustering; must be >= k.

    Raises
    ------
    ValueError
        If k < 1 or buffer_size < k.
    """

    def __init__(self, logger: logging.Logger, schema: Schema, k: int, buffer_size: int):
        if k < 1:
            raise ValueError(f"k ({k}) must be >= 1")
        if buffer_size < k:
            raise ValueError(f"buffer_size ({buffer_size}) must be >= k ({k})")
        self.logger = logger
        self.schema = schema
        self.k = k
        self.buffer_size = buffer_size
        if buffer_size < 2 * k:
            self.logger.warning(
                "buffer_size (%d) < 2k (%d); clusters will be fewer and larger",
                buffer_size,
                2 * k,
            )
        self.reset()

    def reset(self) -> None:
        """
        Drop all buffered records and pending pairs.
        """
        self._buffer: list[Record] = []
        self._pending: deque[RecordPair] = deque()
        self._input_exhausted = False
        self._next_cluster_id = 0
        self.n_added = 0
        self.n_emitted = 0

    def debug_logging_enabled(self) -> bool:
        return self.logger.isEnabledFor(logging.DEBUG)

    @property
    def n_buffered(self) -> int:
        return len(self._buffer)

    @property
    def n_pending(self) -> int:
        return len(self._pending)

    def add(self, record: Record) -> None:
        """
        Ingest one record.

        Parameters
        ----------
        record : Record
            The record to buffer. It is kept as the original of its pair and
            never modified.

        Raises
        ------
        CapacityExceeded
            If the buffer is full and cannot be clustered because pairs of the
            previous batch are still pending.
        ValueError
            If the record width does not match the schema, or input was
            already flushed.
        """
        if self._input_exhausted:
            raise ValueError("Cannot add records after the input was flushed")
        if len(record) != len(self.schema):
            raise ValueError(
                f"Record width ({len(record)}) != schema width ({len(self.schema)})"
            )
        if len(self._buffer) >= self.buffer_size:
            raise CapacityExceeded(
                f"Buffer is full ({self.buffer_size} records) with {len(self._pending)} "
                "pairs pending; consume pairs with next_pair() before adding records"
            )
        self._buffer.append(record)
        self.n_added += 1
        self._cluster_if_ready()

    def flush(self) -> None:
        """
        Signal the end of the input stream.

        The remaining buffered records are clustered as soon as the pending
        pairs are consumed, even if there are fewer than buffer_size of them.
        """
        self._input_exhausted = True
        self._cluster_if_ready()

    def next_pair(self) -> Optional[RecordPair]:
        """
        Return the next (original, microaggregated) pair, if one is ready.

        Returns
        -------
        Optional[RecordPair]
            The next pair in arrival order, or None if no clustered record is
            waiting to be consumed.
        """
        if not self._pending:
            self._cluster_if_ready()
        if not self._pending:
            return None
        self.n_emitted += 1
        return self._pending.popleft()

    def has_more(self) -> bool:
        return len(self._buffer) > 0 or len(self._pending) > 0

    def _cluster_if_ready(self) -> None:
        if self._pending or not self._buffer:
            return
        if len(self._buffer) >= self.buffer_size or self._input_exhausted:
            self._cluster_buffer()

    def _cluster_buffer(self) -> None:
        records, self._buffer = self._buffer, []
        buffer_df = records_to_df(self.schema, records)
        position_col = make_temp_position_col(buffer_df)
        labels = assign_clusters(buffer_df, self.schema.qid_names, position_col, self.k)
        buffer_df = buffer_df.drop(columns=[position_col])

        n_clusters = int(labels.max()) + 1
        label_to_cluster_id = [self._next_cluster_id + label for label in range(n_clusters)]
        self._next_cluster_id += n_clusters
        label_to_size = [0] * n_clusters
        for label in labels:
            label_to_size[label] += 1
        label_to_representatives = [
            cluster_representatives(buffer_df[labels == label], self.schema)
            for label in range(n_clusters)
        ]

        for position, record in enumerate(records):
            label = int(labels[position])
            # missing QID values stay missing
            idx_to_value = {
                idx: value
                for idx, value in label_to_representatives[label].items()
                if not is_missing(record[idx])
            }
            self._pending.append(
                RecordPair(
                    original=record,
                    anonymized=record.replace(idx_to_value),
                    cluster_id=label_to_cluster_id[label],
                    cluster_size=label_to_size[label],
                )
            )

        if self.debug_logging_enabled():
            self.logger.debug(
                "Clustered %d buffered records into %d clusters with sizes %s",
                len(records),
                n_clusters,
                label_to_size,
            )
        if min(label_to_size) < self.k:
            self.logger.warning(
                "Final cluster has %d records, fewer than k (%d); its members are less protected: "
                "their k-anonymity is weaker, and noise calibrated to clusters of k under-covers "
                "the sensitivity of its representatives",
                min(label_to_size),
                self.k,
            )
