"""Services package: expose all concrete services from one import."""
from .gallery_settings import GallerySettings
from .gallery_service import GalleryService
from .project_service import ProjectService
from .project_name_validator import ProjectNameValidator

__all__ = [
    'GallerySettings',
    'GalleryService',
    'ProjectService',
    'ProjectNameValidator',
]
