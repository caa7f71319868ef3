"""SAFI — vocal and instrumental stem splitting service."""

__version__ = "0.1.0"
