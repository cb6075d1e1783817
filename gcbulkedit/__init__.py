"""Backend for the Google Calendar Bulk Edit extension."""

__version__ = "0.1.0"
