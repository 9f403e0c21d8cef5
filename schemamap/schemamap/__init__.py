"""Map columns of tabular source files onto the fields of known data types."""

__version__ = "0.1.0"
