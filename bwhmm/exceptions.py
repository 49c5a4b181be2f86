"""
Exception hierarchy for the bwhmm library.
"""


class BWHMMError(Exception):
    """Base exception for bwhmm."""
    pass


class InvalidModelInputError(BWHMMError, ValueError):
    """Model parameters or observations violate the input contract."""
    pass


class DegenerateStatisticsError(BWHMMError, ArithmeticError):
    """Expected counts cannot be normalized into a distribution."""
    pass


class IterationCountError(BWHMMError, ValueError):
    """Iteration count is not a positive integer."""
    pass


class ModelPersistenceError(BWHMMError):
    """Saving or loading a trained model failed."""
    pass


class SequenceFileError(BWHMMError):
    """Observation sequence file is missing or malformed."""
    pass
