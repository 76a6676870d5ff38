"""freshimage - rebuild container images only when their context changed."""

__version__ = "0.1.0"
