"""
Exceptions raised by the streaming anonymization pipeline.

All of these are local, synchronous failures. None of them is retried
internally; retry policy, if any, belongs to whoever drives the filter.
"""


class CapacityExceeded(RuntimeError):
    """
    A record was added to a full buffer whose previous clusters are undrained.

    This is a caller bug: pairs must be consumed with ``next_pair()`` before the
    buffer can be clustered again. The microaggregator itself stays usable.
    """


class EvaluationDisabled(RuntimeError):
    """
    Evaluation metrics were requested from a filter configured without evaluation.
    """


class Exhausted(RuntimeError):
    """
    A record source was asked for a record after ``has_more()`` became false.
    """
