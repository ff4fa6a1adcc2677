"""Tracing and sampling profilers, a full event reporter, resource statistics and helpers."""

__version__ = "0.4.18"