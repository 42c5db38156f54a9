"""HTTP gateway that writes uploaded files into a directory tree."""

__version__ = "1.0.0"
