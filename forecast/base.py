"""
forecast/base.py

Abstract contracts for the statistical estimators used by the pipeline.

The pipeline treats both estimators as black boxes: it hands over an ordered
array of observations and receives plain arrays back.  No I/O, no logging,
and no side effects are permitted inside implementations.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Sequence

import numpy as np


@dataclass(frozen=True)
class TrendProjection:
    """
    Output of a trend model: one entry per forecast step.

    ``lower`` and ``upper`` bound the central 80 % prediction interval.
    """

    mean: np.ndarray
    lower: np.ndarray
    upper: np.ndarray


@dataclass(frozen=True)
class Decomposition:
    """Additive trend / seasonal / remainder split of a periodic series."""

    trend: np.ndarray
    seasonal: np.ndarray
    remainder: np.ndarray


class BaseTrendModel(ABC):
    """
    Contract for annual trend model implementations.

    :meth:`project` must be deterministic and must not depend on *horizon*
    for anything but the number of steps returned, so that a longer horizon
    extends a shorter one without altering it.
    """

    @abstractmethod
    def project(self, values: Sequence[float], horizon: int) -> TrendProjection:
        """
        Fit the model to *values* and project *horizon* steps ahead.

        Parameters
        ----------
        values:
            Ordered observations, oldest first, one per year with no gaps.
            Contains at least two points.
        horizon:
            Positive number of future periods to project.
        """


class BaseSeasonalDecomposer(ABC):
    """Contract for seasonal decomposition implementations."""

    @abstractmethod
    def decompose(self, values: Sequence[float], period: int) -> Decomposition:
        """
        Split *values* into trend, seasonal and remainder components.

        All three arrays have the same length as *values* and sum back to it.
        """
