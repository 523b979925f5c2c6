"""Progression and visibility engine for gamified programming exercises."""

__version__ = "0.1.0"
