"""Shapes multi-source health-check samples into fixed-length uptime timelines."""

__version__ = "0.1.0"
