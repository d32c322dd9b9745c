"""Dockerfile parsing, stage resolution and instruction execution for container image builds."""

__version__ = "0.9.0"