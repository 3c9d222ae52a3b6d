"""fff: request URLs from stdin fairly fast and keep the interesting responses."""

__version__ = "0.1.0"
