"""Exception types raised by the curve engine."""

from __future__ import annotations


class ValidationError(ValueError):
    """Input rejected at a curve-construction boundary.

    Raised for malformed anchor orderings, out-of-range percentages,
    non-positive rates, too few control points and non-numeric form values.
    """
