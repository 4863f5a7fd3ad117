"""Concurrency: single-flight coalescing of in-progress renders."""

from firecomp.concurrency.singleflight import SingleFlight

__all__ = ["SingleFlight"]
