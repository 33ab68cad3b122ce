"""Server-side catalog service for the gallery."""
import logging
from typing import List, Optional

from gallery import GalleryNotFoundError, GalleryStorageError
from ..repositories.blob_repository import BlobStore, BlobStoreError
from .gallery_settings import GallerySettings

logger = logging.getLogger('gallery.service')


class GalleryService:
    """Handles gallery requests, delegating persistence to the ``database``
    module's helper functions and source archives to a :class:`BlobStore`.

    The service holds no per-request state, so one instance may be shared
    by every request thread and by several server processes.

    All methods accept a *db* SQLAlchemy session as the first argument so
    that callers (Flask route handlers) control the session lifecycle.

    Queries that are recognised but not supported yet return ``None``;
    an empty result is always an empty list.
    """

    def __init__(self, db_module, blob_store: BlobStore,
                 settings: Optional[GallerySettings] = None) -> None:
        """
        Args:
            db_module:  The imported ``database`` module (or any object that
                exposes ``create_gallery_app``, ``get_gallery_app``,
                ``get_recent_gallery_apps`` and friends).
            blob_store: Blob store holding gallery source archives.
            settings:   Gallery settings; defaults to development settings.
        """
        self._db = db_module
        self._blobs = blob_store
        self._settings = settings or GallerySettings()

    # ------------------------------------------------------------------
    # Publishing
    # ------------------------------------------------------------------

    def publish_app(self, db, project_id: int, title: str, description: str,
                    developer_id: str = '') -> Optional[int]:
        """Create a gallery app for *project_id*.

        Returns:
            The new gallery app id, or ``None`` if storage failed.
        """
        return self._db.create_gallery_app(db, title, description, project_id,
                                           developer_id=developer_id)

    def delete_app(self, db, gallery_id: int) -> None:
        """Not supported yet; deleting a gallery app has no effect."""
        return None

    def store_aia_to_cloud(self, db, project_id: int) -> bool:
        """Copy a published project's source archive into the gallery bucket.

        The object is written in two phases: the archive is streamed through
        an unlocked channel that is closed without finalizing, then the object
        is re-opened under lock and finalized.

        Returns:
            ``True`` once the object is finalized.

        Raises:
            GalleryNotFoundError: The project, its source or its gallery app
                does not exist.
            GalleryStorageError:  The blob store failed during the write.
        """
        project = self._db.get_project(db, project_id)
        if not project or not project.get('source_key'):
            raise GalleryNotFoundError(f'Project {project_id} has no source to store')
        app = self._db.get_gallery_app_for_project(db, project_id)
        if not app:
            raise GalleryNotFoundError(f'Project {project_id} is not published')

        bucket = self._settings.bucket
        key = self._settings.source_key(app['gallery_app_id'])
        try:
            source = self._blobs.read_url(project['source_key'])
            writable = self._blobs.create_file(
                bucket, key,
                acl='public-read',
                mime_type='application/zip',
                metadata={'project_id': str(project_id),
                          'gallery_id': str(app['gallery_app_id'])},
            )
            channel = self._blobs.open_write_channel(writable, lock=False)
            channel.write(source)
            # Close without finalizing; the object is finished below
            channel.close()

            channel = self._blobs.open_write_channel(writable, lock=True)
            channel.close_finally()
        except BlobStoreError as exc:
            logger.error("Storing source of project %s to %s failed: %s",
                         project_id, self._blobs.location_for(bucket, key), exc)
            raise GalleryStorageError(str(exc)) from exc
        logger.info("Stored source of project %s at %s", project_id,
                    self._blobs.location_for(bucket, key))
        return True

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_recent_apps(self, db, start: int, count: int) -> List[dict]:
        """Return a page of the most recently updated apps."""
        return self._db.get_recent_gallery_apps(db, start, count)

    def get_app(self, db, gallery_id: int) -> Optional[dict]:
        """Return the app dict for *gallery_id*, or ``None``."""
        return self._db.get_gallery_app(db, gallery_id)

    def find_apps(self, db, keywords: str, start: int, count: int) -> Optional[List[dict]]:
        """Keyword search is not supported yet; always ``None``."""
        return None

    def get_most_downloaded_apps(self, db, start: int, count: int) -> Optional[List[dict]]:
        """Download ranking is not supported yet; always ``None``."""
        return None

    def get_developer_apps(self, db, developer_id: str, start: int,
                           count: int) -> List[dict]:
        """Return a page of apps published by *developer_id*."""
        return self._db.get_developer_gallery_apps(db, developer_id, start, count)

    def get_featured_app(self, db, start: int, count: int) -> List[dict]:
        """Return a page of featured apps."""
        return self._db.get_featured_gallery_apps(db, start, count)

    def count_apps(self, db, developer_id: Optional[str] = None,
                   featured: Optional[bool] = None) -> int:
        """Return the number of apps a listing query can page through."""
        return self._db.count_gallery_apps(db, developer_id=developer_id,
                                           featured=featured)

    # ------------------------------------------------------------------
    # Comments and counters
    # ------------------------------------------------------------------

    def get_comments(self, db, app_id: int) -> List[dict]:
        """Return the comments on *app_id*, oldest first."""
        return self._db.get_gallery_comments(db, app_id)

    def publish_comment(self, db, app_id: int, user_id: str,
                        text: str) -> Optional[int]:
        """Add a comment to *app_id*.

        Returns:
            The new comment id, or ``None`` if the app does not exist.
        """
        return self._db.add_gallery_comment(db, app_id, user_id, text)

    def set_featured(self, db, gallery_id: int, featured: bool = True) -> bool:
        """Mark or unmark *gallery_id* as featured.

        Returns:
            ``True`` if the app exists and the flag was stored.
        """
        ok = self._db.set_gallery_app_featured(db, gallery_id, featured)
        if ok:
            logger.info("Gallery app %s featured=%s", gallery_id, featured)
        return ok

    def app_was_downloaded(self, db, gallery_id: int) -> bool:
        """Record a download of *gallery_id*.

        Returns:
            ``True`` if the app exists and its counter was incremented.
        """
        return self._db.increment_app_downloads(db, gallery_id)
