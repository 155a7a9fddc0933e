"""Media library scanning, tag parsing and login throttling for a music server."""

__version__ = "1.0.0"