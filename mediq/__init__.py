"""MediQ clinic queue: slot-based appointment booking and status workflow."""

__version__ = "1.0.0"
