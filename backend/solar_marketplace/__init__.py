"""Solar marketplace core: order and product approval workflows."""

__version__ = "1.0.0"
