"""Business logic for creating user projects from gallery apps."""
import hashlib
import logging
from typing import List

from gallery import GalleryNotFoundError, GalleryStorageError, ProjectNameError
from ..repositories.blob_repository import BlobStore, BlobStoreError
from .gallery_settings import GallerySettings
from .project_name_validator import ProjectNameValidator

logger = logging.getLogger('gallery.projects')


class ProjectService:
    """Materializes gallery apps as new projects, delegating persistence to
    the ``database`` module and source archives to a :class:`BlobStore`.

    Rules
    -----
    * The project name must be a valid identifier that the user does not
      already use.
    * The source archive at *source_url* must exist; it is copied into the
      user's project space so later edits never touch the gallery copy.
    """

    def __init__(self, db_module, blob_store: BlobStore,
                 settings: GallerySettings) -> None:
        self._db = db_module
        self._blobs = blob_store
        self._settings = settings

    @staticmethod
    def project_source_key(user_id: str, project_id: int) -> str:
        """Blob key of a project's source; the user id is hashed into the key."""
        owner = hashlib.sha256(user_id.encode('utf-8')).hexdigest()[:32]
        return f'projects/{owner}/{project_id}/source.aia'

    def get_project_names(self, db, user_id: str) -> List[str]:
        """Return the names of *user_id*'s projects."""
        return self._db.get_project_names(db, user_id)

    def new_project_from_gallery(self, db, user_id: str, project_name: str,
                                 source_url: str, gallery_id: int) -> dict:
        """Create a project for *user_id* from a gallery app's source.

        Returns:
            The created project dict (``project_id``, ``project_name``,
            ``user_id``, ``gallery_id``, ``date_created``).

        Raises:
            ProjectNameError:     *project_name* is malformed or taken.
            GalleryNotFoundError: No source archive at *source_url*.
            GalleryStorageError:  The project could not be stored.
        """
        errors: List[str] = []
        validator = ProjectNameValidator(
            lambda: self.get_project_names(db, user_id), errors.append)
        if not validator.check_new_project_name(project_name):
            raise ProjectNameError(errors[0])

        try:
            source = self._blobs.read_url(source_url)
        except BlobStoreError as exc:
            raise GalleryNotFoundError(f'No gallery source at {source_url}') from exc

        project = self._db.create_project(db, user_id, project_name,
                                          gallery_id=gallery_id)
        if not project:
            raise GalleryStorageError(f'Could not create project {project_name}')

        key = self.project_source_key(user_id, project['project_id'])
        try:
            self._blobs.write_object(self._settings.bucket, key, source,
                                     mime_type='application/zip')
        except BlobStoreError as exc:
            logger.error("Copying %s for project %s failed: %s",
                         source_url, project['project_id'], exc)
            # Release the name so the user can retry
            self._db.delete_project(db, project['project_id'])
            raise GalleryStorageError(str(exc)) from exc
        location = self._blobs.location_for(self._settings.bucket, key)
        self._db.update_project_source(db, project['project_id'], location)
        project['source_key'] = location
        logger.info("Created project %s (%s) for %s from gallery app %s",
                    project['project_id'], project_name, user_id, gallery_id)
        return project
