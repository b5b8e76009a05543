"""Exceptions for the conformance module."""


class ConformanceError(Exception):
    """Base class for conformance checking errors."""
    pass


class DataFetchError(ConformanceError):
    """A measurement, timepoint, or study metadata lookup failed during aggregation."""
    pass


class InvalidTrialCriteriaTypeError(ConformanceError):
    """Trial criteria type is missing or has no identifier."""
    pass


class EvaluationError(ConformanceError):
    """Malformed rule set, unknown criterion, or a criterion failing during evaluation."""
    pass


class DefinitionNotFoundError(ConformanceError):
    """Requested evaluation definition is not registered."""
    pass
