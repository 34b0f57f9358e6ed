"""Eligibility, ranking, notification and grading engine for campus placement drives."""

__version__ = "0.1.0"
