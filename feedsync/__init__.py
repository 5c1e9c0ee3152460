"""Inventory synchronization agent for remote feed stores."""

__version__ = "0.3.0"
