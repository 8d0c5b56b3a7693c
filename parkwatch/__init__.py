"""Parking-space and car detection in parking-lot images, with evaluation metrics and a command line tool."""

__version__ = "1.0.0"