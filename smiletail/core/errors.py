from __future__ import annotations

"""Centralized error types for the smiletail core package."""


class SmileTailError(Exception):
    """Base exception for the smiletail package."""

    pass


class InvalidInputError(SmileTailError):
    """Exception raised for invalid input parameters."""

    pass


class CalculationError(SmileTailError):
    """Exception raised when calculations fail."""

    pass


class RootFindingError(CalculationError):
    """Exception raised when a root cannot be bracketed or solved."""

    pass


__all__ = ["SmileTailError", "InvalidInputError", "CalculationError", "RootFindingError"]
