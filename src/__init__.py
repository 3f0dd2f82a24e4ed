# src/__init__.py - v1
"""mediaseo: AI-generated SEO metadata for image libraries."""

from mediaseo.version import __version__

__all__ = ["__version__"]
