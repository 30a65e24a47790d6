"""
API Layer.

This package contains the client that talks to the update server.
"""

from .client import UpdateServerClient

__all__ = ["UpdateServerClient"]
