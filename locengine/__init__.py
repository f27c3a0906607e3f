"""Location engine helpers: NMEA output, daemon pipe messaging, XTRA and NI sessions."""

__version__ = "0.1.0"