"""Courtside - seed rounds, elimination brackets and court assignment."""

__version__ = "0.1.0"
