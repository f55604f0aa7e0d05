"""travelweb - external video engagement estimation."""

__version__ = "0.1.0"
