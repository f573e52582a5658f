"""Rehabilitation goal breakdown and cascade-completion engine."""
__version__ = "1.0.0"
