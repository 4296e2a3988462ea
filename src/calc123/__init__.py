"""calc123 -- spreadsheet-style arithmetic formula evaluation."""

__version__ = "0.1.0"
