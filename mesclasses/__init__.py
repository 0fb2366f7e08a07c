"""Offline classroom records: cycles, classes, students, sessions and documents."""

__version__ = "1.0.0"
