"""
Incremental evaluation of disclosure risk and information loss.

The :class:`Evaluation` observes every (original, anonymized) pair emitted by a
privacy filter and keeps running aggregates only, so that metrics can be
reported at any point of an unbounded stream without retaining or re-reading
emitted records.

Disclosure risk
---------------
Each published record is indistinguishable, on its quasi-identifiers, from the
other members of its cluster. Its re-identification probability is thus
estimated as ``1 / cluster_size``, and the disclosure risk of the stream is the
average over all observed records. Records that were not clustered count as
clusters of one (risk 1). The estimate lies in [0, 1].

Information loss
----------------
For each numeric quasi-identifier, the mean squared deviation between original
and anonymized values is normalized by the running variance of the original
values, then averaged across attributes. A value of 0.0 means no distortion;
values around 1.0 mean the distortion is as large as the natural spread of the
data. The estimate is >= 0.
"""

import math
from typing import Any

import numpy as np

from stream_anonymize.records import RecordPair, Schema
from stream_anonymize.utils import (
    accumulate_squared_deviation,
    normalized_mean_squared_deviation,
    welford_update,
)

_CSV_FIELDS = [
    "n_observed",
    "disclosure_risk",
    "information_loss",
    "incremental_information_loss",
    "average_cluster_size",
    "minimum_cluster_size",
]


class Evaluation:
    """
    Running disclosure risk and information loss estimates for a record stream.

    Parameters
    ----------
    schema : Schema
        Schema of the stream; numeric quasi-identifiers are evaluated.
    """

    def __init__(self, schema: Schema):
        self.schema = schema
        self.indices = schema.numerical_qid_indices
        self.reset()

    def reset(self) -> None:
        n_attributes = len(self.indices)
        self.n_observed = 0
        self._sum_inverse_cluster_size = 0.0
        self._sum_cluster_size = 0.0
        self._minimum_cluster_size: int = 0
        # running variance of the original values
        self._variance_counts = np.zeros(n_attributes, dtype=np.float64)
        self._means = np.zeros(n_attributes, dtype=np.float64)
        self._m2s = np.zeros(n_attributes, dtype=np.float64)
        # squared deviations since the start of the stream
        self._deviation_sums = np.zeros(n_attributes, dtype=np.float64)
        self._deviation_counts = np.zeros(n_attributes, dtype=np.float64)
        # squared deviations since the last incremental report
        self._window_deviation_sums = np.zeros(n_attributes, dtype=np.float64)
        self._window_deviation_counts = np.zeros(n_attributes, dtype=np.float64)

    def observe(self, pair: RecordPair) -> None:
        """
        Fold one emitted pair into the running aggregates.

        Parameters
        ----------
        pair : RecordPair
            The pair to observe. It is not retained.
        """
        cluster_size = pair.cluster_size if pair.cluster_size is not None else 1
        assert cluster_size >= 1, f"cluster_size ({cluster_size}) must be >= 1"
        self.n_observed += 1
        self._sum_inverse_cluster_size += 1.0 / cluster_size
        self._sum_cluster_size += cluster_size
        if self.n_observed == 1 or cluster_size < self._minimum_cluster_size:
            self._minimum_cluster_size = cluster_size

        if not self.indices:
            return
        originals = _as_float_array(pair.original.values, self.indices)
        anonymized = _as_float_array(pair.anonymized.values, self.indices)
        welford_update(self._variance_counts, self._means, self._m2s, originals)
        accumulate_squared_deviation(
            self._deviation_sums, self._deviation_counts, originals, anonymized
        )
        accumulate_squared_deviation(
            self._window_deviation_sums, self._window_deviation_counts, originals, anonymized
        )

    def disclosure_risk(self) -> float:
        if self.n_observed == 0:
            return 0.0
        return min(1.0, self._sum_inverse_cluster_size / self.n_observed)

    def information_loss(self) -> float:
        return normalized_mean_squared_deviation(
            self._deviation_sums, self._deviation_counts, self._variance_counts, self._m2s
        )

    def incremental_information_loss(self) -> float:
        """
        Information loss of the pairs observed since the previous call.

        Returns
        -------
        float
            The information loss estimate restricted to the pairs observed since
            the last call, normalized by the variance of the whole stream so far.
            Returns 0.0 if no pair was observed since the last call.

        Notes
        -----
        Calling this method resets the window.
        """
        incremental_loss = normalized_mean_squared_deviation(
            self._window_deviation_sums,
            self._window_deviation_counts,
            self._variance_counts,
            self._m2s,
        )
        self._window_deviation_sums[:] = 0.0
        self._window_deviation_counts[:] = 0.0
        return incremental_loss

    def average_cluster_size(self) -> float:
        if self.n_observed == 0:
            return math.nan
        return self._sum_cluster_size / self.n_observed

    def minimum_cluster_size(self) -> int:
        """
        The smallest cluster observed so far, i.e. the k actually achieved; 0 if none.
        """
        return self._minimum_cluster_size

    def metrics(self, incremental: bool = True) -> dict[str, float]:
        """
        Snapshot of all metrics.

        Parameters
        ----------
        incremental : bool, default=True
            If True, includes the incremental information loss, which resets its
            window. If False, that entry is np.nan and the window is untouched.

        Returns
        -------
        Dict[str, float]
            Metrics keyed by name, in a stable order.
        """
        return {
            "n_observed": float(self.n_observed),
            "disclosure_risk": self.disclosure_risk(),
            "information_loss": self.information_loss(),
            "incremental_information_loss": (
                self.incremental_information_loss() if incremental else np.nan
            ),
            "average_cluster_size": self.average_cluster_size(),
            "minimum_cluster_size": float(self.minimum_cluster_size()),
        }

    @staticmethod
    def csv_header() -> str:
        return ",".join(_CSV_FIELDS)

    def csv_record(self) -> str:
        """
        Current metrics as one CSV line matching :meth:`csv_header`; resets the window.
        """
        metrics = self.metrics()
        return ",".join(_format_csv_value(metrics[field]) for field in _CSV_FIELDS)


def _as_float_array(values: tuple[Any, ...], indices: list[int]) -> np.ndarray:
    return np.array(
        [np.nan if values[idx] is None else float(values[idx]) for idx in indices],
        dtype=np.float64,
    )


def _format_csv_value(value: float) -> str:
    if isinstance(value, float) and math.isnan(value):
        return ""
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.12f}"
