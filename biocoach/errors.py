from __future__ import annotations


class BiocoachError(Exception):
    """Base class for domain errors raised by biocoach."""


class InvalidRangeError(BiocoachError, ValueError):
    """A tolerance range with min > max or a non-finite bound."""


class InvalidReadingError(BiocoachError, ValueError):
    """A biometric reading that cannot be classified (negative, NaN, inf)."""


class UnknownMetricError(BiocoachError, ValueError):
    """A metric name that matches none of the tracked biometrics."""


class ToleranceConfigError(BiocoachError, ValueError):
    """A tolerance config file that is unreadable or fails validation."""
