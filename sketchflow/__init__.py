"""sketchflow: verify, upload and package management for Arduino sketches."""

__version__ = "0.1.0"
