"""Personal Log: a one-entry-per-day journal with text blocks and media."""

__version__ = '0.1.0'
