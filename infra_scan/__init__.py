"""Secret management and connection bootstrapping for infrastructure scans."""

__version__ = "0.1.0"
