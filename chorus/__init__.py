"""Chorus - orchestration engine for multi-agent group conversations."""

__version__ = "0.1.0"
