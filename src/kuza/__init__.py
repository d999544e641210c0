"""Kuza: single-owner, time-locked token vaults."""

__version__ = "0.1.0"
