"""Register users and email them on their birthday."""

__version__ = "0.1.0"
