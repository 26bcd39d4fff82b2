"""backend-shared - Support library for backend services."""

__version__ = "0.1.0"
