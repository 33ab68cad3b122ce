"""Gallery settings: environment and the locations of gallery assets."""
from typing import Any, Dict, Optional

from gallery import DEVELOPMENT, PRODUCTION


class GallerySettings:
    """Resolves where gallery sources and images live.

    In production, images are served straight from the cloud bucket
    (``<cloud_base_url>/<bucket>/<key>``).  Elsewhere they are served by the
    gallery server from its local blob store (``<local_base_url>/<bucket>/<key>``).
    Source archives are always addressed by their ``/gs/<bucket>/<key>``
    location, which the server resolves against its blob store.
    """

    def __init__(self, environment: Optional[str] = DEVELOPMENT,
                 bucket: str = 'galleryai2',
                 cloud_base_url: str = 'https://storage.googleapis.com',
                 local_base_url: str = '/api/gallery/blobs') -> None:
        self.environment = environment or DEVELOPMENT
        self.bucket = bucket
        self.cloud_base_url = cloud_base_url.rstrip('/')
        self.local_base_url = local_base_url.rstrip('/')

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'GallerySettings':
        """Build settings from a loaded ``config.json`` dict."""
        return cls(
            environment=config.get('environment', DEVELOPMENT),
            bucket=config.get('bucket', 'galleryai2'),
            cloud_base_url=config.get('cloud_base_url', 'https://storage.googleapis.com'),
            local_base_url=config.get('local_base_url', '/api/gallery/blobs'),
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GallerySettings':
        return cls.from_config(data)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'environment': self.environment,
            'bucket': self.bucket,
            'cloud_base_url': self.cloud_base_url,
            'local_base_url': self.local_base_url,
        }

    def is_production(self) -> bool:
        return self.environment == PRODUCTION

    # ------------------------------------------------------------------
    # Keys
    # ------------------------------------------------------------------

    @staticmethod
    def source_key(gallery_id: int) -> str:
        return f'gallery/apps/{gallery_id}/aia'

    @staticmethod
    def image_key(gallery_id: int) -> str:
        return f'gallery/apps/{gallery_id}/image'

    @staticmethod
    def project_image_key(project_id: int) -> str:
        return f'gallery/projects/{project_id}/image'

    @staticmethod
    def user_image_key(user_id: str) -> str:
        return f'user/{user_id}/image'

    # ------------------------------------------------------------------
    # Locations
    # ------------------------------------------------------------------

    def get_source_url(self, gallery_id: int) -> str:
        """Blob location of the source archive, ``/gs/<bucket>/gallery/apps/<id>/aia``."""
        return f'/gs/{self.bucket}/{self.source_key(gallery_id)}'

    def _cloud(self, key: str) -> str:
        return f'{self.cloud_base_url}/{self.bucket}/{key}'

    def _local(self, key: str) -> str:
        return f'{self.local_base_url}/{self.bucket}/{key}'

    def get_cloud_image_url(self, gallery_id: int) -> str:
        return self._cloud(self.image_key(gallery_id))

    def get_cloud_image_location(self, gallery_id: int) -> str:
        return self._local(self.image_key(gallery_id))

    def get_project_image_url(self, project_id: int) -> str:
        return self._cloud(self.project_image_key(project_id))

    def get_project_image_location(self, project_id: int) -> str:
        return self._local(self.project_image_key(project_id))

    def get_user_image_url(self, user_id: str) -> str:
        return self._cloud(self.user_image_key(user_id))

    def get_user_image_location(self, user_id: str) -> str:
        return self._local(self.user_image_key(user_id))
