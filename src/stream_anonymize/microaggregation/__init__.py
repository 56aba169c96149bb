"""
Microaggregation of record streams.

This package implements k-anonymous microaggregation under a bounded lookahead
buffer:

- total_order: ranking of buffered records and their partition into clusters
- representatives: mean (numerical) and mode (categorical) cluster representatives
- aggregator: the buffered TotalOrderMicroAggregator
"""

from .aggregator import TotalOrderMicroAggregator
from .representatives import (
    categorical_representative,
    cluster_representatives,
    numerical_representative,
)
from .total_order import assign_clusters, partition_sizes, rank_records

__all__ = [
    "TotalOrderMicroAggregator",
    "assign_clusters",
    "partition_sizes",
    "rank_records",
    "cluster_representatives",
    "numerical_representative",
    "categorical_representative",
]
