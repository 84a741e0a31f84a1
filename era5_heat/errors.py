"""
Exceptions raised by the aggregation pipeline.

Configuration, geometry and bookkeeping errors abort the run. Dimension errors
abort the processing year they were raised in.
"""


class AggregationError(Exception):
    """Base class for all pipeline errors."""


class ConfigurationError(AggregationError):
    pass


class CRSMismatchError(ConfigurationError):
    pass


class MissingFieldError(ConfigurationError):
    pass


class GeometryRepairError(AggregationError):
    pass


class DimensionError(AggregationError):
    pass


class IncompleteDayError(DimensionError):
    pass


class BookkeepingError(AggregationError):
    pass


class WeightSumError(BookkeepingError):
    pass


class RowCountError(BookkeepingError):
    pass
