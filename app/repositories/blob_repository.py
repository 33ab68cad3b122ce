"""Filesystem-backed blob store with bucket/key addressing.

Layout on disk::

    <root>/<bucket>/<key>             finalized object
    <root>/<bucket>/<key>.partial     object still being written
    <root>/<bucket>/<key>.meta.json   acl, mime type and user metadata

Objects are written through write channels.  A channel opened without the
lock can append and be closed, leaving the object un-finalized so a later
request can continue writing.  Only a locked channel may finalize, which
atomically publishes the object and makes it readable.
"""
import os
import re
from typing import Dict, Optional, Tuple

from .base import BaseRepository

_PARTIAL_SUFFIX = '.partial'
_META_SUFFIX = '.meta.json'
_URL_RE = re.compile(r'^/gs/(?P<bucket>[^/]+)/(?P<key>.+)$')
_SAFE_PART_RE = re.compile(r'^[A-Za-z0-9@._-]+$')


class BlobStoreError(IOError):
    """Raised for any blob-store I/O fault."""


class BlobFile:
    """Handle to a (possibly not yet finalized) object."""

    def __init__(self, bucket: str, key: str) -> None:
        self.bucket = bucket
        self.key = key

    @property
    def full_path(self) -> str:
        """``/gs/<bucket>/<key>`` location string."""
        return f'/gs/{self.bucket}/{self.key}'

    def __repr__(self) -> str:
        return f'BlobFile({self.full_path!r})'


class WriteChannel:
    """Append-only channel onto an un-finalized object."""

    def __init__(self, store: 'BlobStore', blob_file: BlobFile, locked: bool) -> None:
        self._store = store
        self.blob_file = blob_file
        self.locked = locked
        self._closed = False

    def write(self, data) -> int:
        """Append *data* (``bytes`` or ``str``, encoded as UTF-8)."""
        if self._closed:
            raise BlobStoreError(f'Channel for {self.blob_file.full_path} is closed')
        if isinstance(data, str):
            data = data.encode('utf-8')
        path = self._store._partial_path(self.blob_file)
        try:
            with open(path, 'ab') as fh:
                fh.write(data)
        except OSError as exc:
            raise BlobStoreError(f'Write to {self.blob_file.full_path} failed: {exc}') from exc
        return len(data)

    def close(self) -> None:
        """Close without finalizing; the object stays writable."""
        self._closed = True

    def close_finally(self) -> None:
        """Finalize the object.  Requires a locked channel."""
        if self._closed:
            raise BlobStoreError(f'Channel for {self.blob_file.full_path} is closed')
        if not self.locked:
            raise BlobStoreError(
                f'Cannot finalize {self.blob_file.full_path} without a lock')
        self._store._finalize(self.blob_file)
        self._closed = True

    def __enter__(self) -> 'WriteChannel':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if not self._closed:
            self.close()


class BlobStore(BaseRepository):
    """Buckets of binary objects stored below *root_dir*."""

    def __init__(self, root_dir: str = '.gallery_blobs') -> None:
        super().__init__(root_dir)

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def _object_path(self, bucket: str, key: str) -> str:
        parts = key.split('/')
        for part in [bucket] + parts:
            if not _SAFE_PART_RE.match(part) or part in ('.', '..'):
                raise BlobStoreError(f'Invalid blob location: /gs/{bucket}/{key}')
        return os.path.join(self._root, bucket, *parts)

    def _partial_path(self, blob_file: BlobFile) -> str:
        return self._object_path(blob_file.bucket, blob_file.key) + _PARTIAL_SUFFIX

    def _meta_path(self, bucket: str, key: str) -> str:
        return self._object_path(bucket, key) + _META_SUFFIX

    @staticmethod
    def parse_url(url: str) -> Tuple[str, str]:
        """Split a ``/gs/<bucket>/<key>`` location into ``(bucket, key)``."""
        match = _URL_RE.match(url or '')
        if not match:
            raise BlobStoreError(f'Not a blob location: {url!r}')
        return match.group('bucket'), match.group('key')

    @staticmethod
    def location_for(bucket: str, key: str) -> str:
        return f'/gs/{bucket}/{key}'

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def create_file(self, bucket: str, key: str, acl: str = 'private',
                    mime_type: str = 'application/octet-stream',
                    metadata: Optional[Dict[str, str]] = None) -> BlobFile:
        """Create an empty, un-finalized object and record its options."""
        blob_file = BlobFile(bucket, key)
        partial = self._partial_path(blob_file)
        try:
            os.makedirs(os.path.dirname(partial), exist_ok=True)
            with open(partial, 'wb'):
                pass
            self._save_json(self._meta_path(bucket, key), {
                'acl': acl,
                'mime_type': mime_type,
                'metadata': dict(metadata or {}),
                'finalized': False,
            })
        except OSError as exc:
            raise BlobStoreError(f'Could not create {blob_file.full_path}: {exc}') from exc
        self._log.debug("Created %s", blob_file.full_path)
        return blob_file

    def open_write_channel(self, blob_file: BlobFile, lock: bool = False) -> WriteChannel:
        """Open a channel onto an un-finalized object."""
        if not os.path.exists(self._partial_path(blob_file)):
            if self.exists(blob_file.bucket, blob_file.key):
                raise BlobStoreError(f'{blob_file.full_path} is already finalized')
            raise BlobStoreError(f'{blob_file.full_path} was never created')
        return WriteChannel(self, blob_file, lock)

    def _finalize(self, blob_file: BlobFile) -> None:
        partial = self._partial_path(blob_file)
        final = self._object_path(blob_file.bucket, blob_file.key)
        try:
            with open(partial, 'rb') as fh:
                payload = fh.read()
            self._write_atomic(final, payload)
            os.unlink(partial)
            meta_path = self._meta_path(blob_file.bucket, blob_file.key)
            meta = self._load_json(meta_path, {})
            meta['finalized'] = True
            meta['size'] = len(payload)
            self._save_json(meta_path, meta)
        except OSError as exc:
            raise BlobStoreError(f'Could not finalize {blob_file.full_path}: {exc}') from exc
        self._log.info("Finalized %s (%d bytes)", blob_file.full_path, len(payload))

    def write_object(self, bucket: str, key: str, payload: bytes,
                     mime_type: str = 'application/octet-stream',
                     acl: str = 'private') -> BlobFile:
        """Create, write and finalize an object in one go."""
        blob_file = self.create_file(bucket, key, acl=acl, mime_type=mime_type)
        channel = self.open_write_channel(blob_file, lock=True)
        channel.write(payload)
        channel.close_finally()
        return blob_file

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def exists(self, bucket: str, key: str) -> bool:
        """True if a finalized object exists."""
        return os.path.isfile(self._object_path(bucket, key))

    def read(self, bucket: str, key: str) -> bytes:
        """Return the bytes of a finalized object."""
        path = self._object_path(bucket, key)
        try:
            with open(path, 'rb') as fh:
                return fh.read()
        except FileNotFoundError as exc:
            raise BlobStoreError(f'No such object: /gs/{bucket}/{key}') from exc
        except OSError as exc:
            raise BlobStoreError(f'Read of /gs/{bucket}/{key} failed: {exc}') from exc

    def read_url(self, url: str) -> bytes:
        bucket, key = self.parse_url(url)
        return self.read(bucket, key)

    def get_metadata(self, bucket: str, key: str) -> Dict:
        """Return the stored options of an object (empty dict if none)."""
        return self._load_json(self._meta_path(bucket, key), {})
