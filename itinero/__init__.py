"""Itinero: day scheduling and coherence checks for travel itineraries."""

__version__ = "0.1.0"
