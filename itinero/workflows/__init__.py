"""Workflow entry points for checking assembled trips."""

from .trip_check import TripCheckResult, run_trip_check

__all__ = ["TripCheckResult", "run_trip_check"]
