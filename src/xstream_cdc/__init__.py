"""Translation of logical change records into normalized CDC changes."""

__version__ = "0.1.0"
