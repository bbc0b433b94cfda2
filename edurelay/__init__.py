"""edurelay: streaming AI study-assistant relay for a learning platform."""

__version__ = "0.1.0"
