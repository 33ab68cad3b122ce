"""Repository package: expose all concrete repositories from one import."""
from .blob_repository import BlobStore, BlobStoreError, BlobFile, WriteChannel

__all__ = [
    'BlobStore',
    'BlobStoreError',
    'BlobFile',
    'WriteChannel',
]
