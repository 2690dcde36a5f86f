from __future__ import annotations

import math
from dataclasses import dataclass


@dataclass(frozen=True)
class Assumption:
    """
    A single modelling assumption required for a causal reading of the forest.

    ``CausalForestResult.assumptions`` lists them. Each assumption carries a
    human-readable name and a ``testable`` flag telling whether the data can
    speak to it (overlap can be inspected, unconfoundedness cannot).
    """

    name: str
    """Human-readable description of the assumption."""

    testable: bool
    """``True`` if a diagnostic in this package inspects the assumption."""

    def fmt_tag(self) -> str:
        """Return a fixed-width bracketed testability label for use in summary output."""
        return "[  testable  ]" if self.testable else "[ untestable ]"


@dataclass(frozen=True)
class DiagnosticCheck:
    """
    Verdict of one diagnostic on a fitted forest.

    ``statistic`` is the number the verdict is read from and ``threshold``
    the value it was compared with, e.g. the largest weighted SMD against
    the balance threshold, or the RATE z-score against the normal quantile.
    ``detail`` renders both for the report.
    """

    name: str
    passed: bool
    detail: str
    statistic: float = math.nan
    threshold: float = math.nan

    @property
    def margin(self) -> float:
        """``statistic - threshold``; NaN if either is missing."""
        return self.statistic - self.threshold

    def __repr__(self) -> str:
        status = "PASS" if self.passed else "FAIL"
        return (
            f"DiagnosticCheck({status!r}, {self.name!r}, "
            f"statistic={self.statistic:.4g}, threshold={self.threshold:.4g})"
        )
