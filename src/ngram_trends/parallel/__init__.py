"""Key-partitioned parallel execution helpers."""

from .partitioning import concat_partitions, map_partitions, partition_by_key, sort_partitions

__all__ = ["partition_by_key", "map_partitions", "concat_partitions", "sort_partitions"]
