"""Query execution core: values, executors, sorting, joins, aggregation and result output."""

__version__ = "0.1.0"

__all__ = [
    "aggregation",
    "executors",
    "merge_join",
    "output",
    "printer",
    "sorting",
    "types",
    "value",
]