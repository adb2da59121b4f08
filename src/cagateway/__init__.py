"""CAGATEWAY: HTTP gateway for multi-CA certificate operations."""

__version__ = "1.0.0"
