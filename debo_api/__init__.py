"""Python client for the Debo REST API."""

__version__ = "0.1.0"
