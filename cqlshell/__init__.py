"""Interactive and scriptable CQL shell."""

__version__ = "0.1.0"
