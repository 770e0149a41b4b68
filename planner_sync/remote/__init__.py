"""
Remote store access: PostgREST client and row mapping
"""

from .client import RemoteClient, RemoteStoreError

__all__ = ["RemoteClient", "RemoteStoreError"]
