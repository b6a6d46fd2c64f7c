"""Luna installer — local web installer for the TIDAL Luna plugin layer."""

__version__ = "1.4.0"
