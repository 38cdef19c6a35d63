"""
forecast/errors.py

Exceptions raised by the visitor forecast pipeline.

Every precondition failure in alignment, trend fitting, seasonal extraction,
composition and stay-duration conversion is fatal to the run.  Ratio gaps in
site disaggregation are not exceptions; see :class:`forecast.types.RatioCoverageGap`.
"""

from __future__ import annotations


class ForecastPipelineError(Exception):
    """Base exception for forecast pipeline failures."""


class SeriesAlignmentError(ForecastPipelineError, ValueError):
    """Raised when a raw input table cannot be normalised into a series."""


class FilterMatchError(ForecastPipelineError, ValueError):
    """Raised when a region/metric filter matches zero rows."""


class InsufficientDataError(ForecastPipelineError, ValueError):
    """Raised when an annual series is too short or has gaps."""


class DecompositionError(ForecastPipelineError, ValueError):
    """Raised when a monthly series cannot yield a seasonal index."""


class MissingStayDurationError(ForecastPipelineError, ValueError):
    """Raised when a visitor type has no usable average stay duration."""


class ForecastPersistenceError(RuntimeError):
    """
    Raised when a forecast run cannot be written to ``forecast_runs``.

    The session has been rolled back before this exception is raised.
    """
