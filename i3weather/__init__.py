"""Weather and ISS spotting block for the i3status stream."""

__version__ = "1.0.0"
