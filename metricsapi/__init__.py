"""Resource metrics API storage, selectors, quantities, tables and server options."""

__version__ = "0.1.0"