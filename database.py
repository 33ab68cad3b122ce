#!/usr/bin/env python3
"""
Database models and configuration for the Gallery.
Stores published gallery apps, their comments, and user projects.
"""

import os
from sqlalchemy import create_engine, Column, Integer, String, Boolean, DateTime, Text, ForeignKey
from sqlalchemy.orm import declarative_base, sessionmaker, relationship
from datetime import datetime
import logging

logger = logging.getLogger('gallery.database')

# Database URL - any SQLAlchemy URL (PostgreSQL in production)
DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///gallery.db')

Base = declarative_base()

try:
    engine = create_engine(DATABASE_URL, echo=False)
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
except Exception as e:
    logger.warning(f"Database not available: {e}")
    engine = None
    SessionLocal = None


class ProjectRecord(Base):
    """A user's project, optionally created from a gallery app."""
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True)
    user_id = Column(String(255), index=True)
    name = Column(String(255))
    source_key = Column(String(1024), nullable=True)  # blob key of the project source
    gallery_id = Column(Integer, nullable=True)  # gallery app it was created from
    created_at = Column(DateTime, default=datetime.utcnow)


class GalleryAppRecord(Base):
    """An application published to the gallery."""
    __tablename__ = "gallery_apps"

    id = Column(Integer, primary_key=True)
    title = Column(String(500))
    description = Column(Text, default='')
    project_id = Column(Integer, index=True)
    project_name = Column(String(255), default='')
    developer_id = Column(String(255), index=True)
    developer_name = Column(String(255), default='')
    downloads = Column(Integer, default=0)
    views = Column(Integer, default=0)
    likes = Column(Integer, default=0)
    featured = Column(Boolean, default=False)
    active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    comments = relationship("GalleryCommentRecord", back_populates="app",
                            cascade="all, delete-orphan")


class GalleryCommentRecord(Base):
    """Free-text feedback on a gallery app."""
    __tablename__ = "gallery_comments"

    id = Column(Integer, primary_key=True)
    app_id = Column(Integer, ForeignKey("gallery_apps.id"), index=True)
    user_id = Column(String(255))
    text = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    app = relationship("GalleryAppRecord", back_populates="comments")


def get_db():
    """Get database session."""
    if SessionLocal:
        db = SessionLocal()
        try:
            yield db
        finally:
            db.close()
    else:
        yield None


def init_db():
    """Initialize database tables."""
    if engine:
        try:
            Base.metadata.create_all(bind=engine)
            logger.info("Database tables initialized successfully")
            return True
        except Exception as e:
            logger.error(f"Failed to initialize database: {e}")
            return False
    return False


def _iso(value):
    return value.isoformat() if value else None


def _app_to_dict(app: GalleryAppRecord) -> dict:
    return {
        'gallery_app_id': app.id,
        'title': app.title,
        'description': app.description or '',
        'project_id': app.project_id,
        'project_name': app.project_name or '',
        'developer_id': app.developer_id or '',
        'developer_name': app.developer_name or '',
        'creation_date': _iso(app.created_at),
        'update_date': _iso(app.updated_at),
        'downloads': app.downloads or 0,
        'views': app.views or 0,
        'likes': app.likes or 0,
        'comments': len(app.comments),
        'featured': bool(app.featured),
        'active': bool(app.active),
    }


def _comment_to_dict(comment: GalleryCommentRecord) -> dict:
    return {
        'comment_id': comment.id,
        'app_id': comment.app_id,
        'user_id': comment.user_id,
        'text': comment.text,
        'time_stamp': _iso(comment.created_at),
    }


def _project_to_dict(project: ProjectRecord) -> dict:
    return {
        'project_id': project.id,
        'project_name': project.name,
        'user_id': project.user_id,
        'gallery_id': project.gallery_id,
        'source_key': project.source_key,
        'date_created': _iso(project.created_at),
    }


# ---------------------------------------------------------------------------
# Gallery apps
# ---------------------------------------------------------------------------

def create_gallery_app(db, title: str, description: str, project_id: int,
                       developer_id: str = ''):
    """Create a gallery app for *project_id*.

    The developer and project name are taken from the project row when it
    exists; *developer_id* is used otherwise.

    Returns:
        The new gallery app id, or None on error.
    """
    if not db:
        return None
    try:
        project = db.query(ProjectRecord).filter(ProjectRecord.id == project_id).first()
        app = GalleryAppRecord(
            title=title,
            description=description or '',
            project_id=project_id,
            project_name=project.name if project else '',
            developer_id=project.user_id if project else developer_id,
            developer_name=project.user_id if project else developer_id,
        )
        db.add(app)
        db.commit()
        logger.info(f"Published gallery app {app.id} for project {project_id}")
        return app.id
    except Exception as e:
        logger.error(f"Error creating gallery app: {e}")
        db.rollback()
        return None


def get_gallery_app(db, gallery_id: int):
    """Get a gallery app dict, or None if it does not exist."""
    if not db:
        return None
    try:
        app = db.query(GalleryAppRecord).filter(GalleryAppRecord.id == gallery_id).first()
        return _app_to_dict(app) if app else None
    except Exception as e:
        logger.error(f"Error getting gallery app: {e}")
        return None


def get_gallery_app_for_project(db, project_id: int):
    """Get the gallery app published from *project_id*, or None."""
    if not db:
        return None
    try:
        app = db.query(GalleryAppRecord).filter(
            GalleryAppRecord.project_id == project_id
        ).order_by(GalleryAppRecord.id.desc()).first()
        return _app_to_dict(app) if app else None
    except Exception as e:
        logger.error(f"Error getting gallery app for project: {e}")
        return None


def _active_apps(db):
    return db.query(GalleryAppRecord).filter(GalleryAppRecord.active.is_(True))


def get_recent_gallery_apps(db, start: int, count: int):
    """Get a page of gallery apps, most recently updated first."""
    if not db:
        return []
    try:
        apps = _active_apps(db).order_by(
            GalleryAppRecord.updated_at.desc(), GalleryAppRecord.id.desc()
        ).offset(start).limit(count).all()
        return [_app_to_dict(a) for a in apps]
    except Exception as e:
        logger.error(f"Error getting recent gallery apps: {e}")
        return []


def get_developer_gallery_apps(db, developer_id: str, start: int, count: int):
    """Get a page of gallery apps published by *developer_id*."""
    if not db:
        return []
    try:
        apps = _active_apps(db).filter(
            GalleryAppRecord.developer_id == developer_id
        ).order_by(
            GalleryAppRecord.updated_at.desc(), GalleryAppRecord.id.desc()
        ).offset(start).limit(count).all()
        return [_app_to_dict(a) for a in apps]
    except Exception as e:
        logger.error(f"Error getting developer gallery apps: {e}")
        return []


def get_featured_gallery_apps(db, start: int, count: int):
    """Get a page of featured gallery apps."""
    if not db:
        return []
    try:
        apps = _active_apps(db).filter(
            GalleryAppRecord.featured.is_(True)
        ).order_by(
            GalleryAppRecord.updated_at.desc(), GalleryAppRecord.id.desc()
        ).offset(start).limit(count).all()
        return [_app_to_dict(a) for a in apps]
    except Exception as e:
        logger.error(f"Error getting featured gallery apps: {e}")
        return []


def count_gallery_apps(db, developer_id: str = None, featured: bool = None):
    """Count active gallery apps, optionally by developer or featured flag."""
    if not db:
        return 0
    try:
        query = _active_apps(db)
        if developer_id is not None:
            query = query.filter(GalleryAppRecord.developer_id == developer_id)
        if featured is not None:
            query = query.filter(GalleryAppRecord.featured.is_(bool(featured)))
        return query.count()
    except Exception as e:
        logger.error(f"Error counting gallery apps: {e}")
        return 0


def set_gallery_app_featured(db, gallery_id: int, featured: bool = True):
    """Mark or unmark a gallery app as featured (moderation)."""
    if not db:
        return False
    try:
        app = db.query(GalleryAppRecord).filter(GalleryAppRecord.id == gallery_id).first()
        if not app:
            return False
        app.featured = featured
        db.commit()
        return True
    except Exception as e:
        logger.error(f"Error updating featured flag: {e}")
        db.rollback()
        return False


def increment_app_downloads(db, gallery_id: int):
    """Increment the download counter of a gallery app."""
    if not db:
        return False
    try:
        app = db.query(GalleryAppRecord).filter(GalleryAppRecord.id == gallery_id).first()
        if not app:
            return False
        # Counter bump must not look like a content update
        db.query(GalleryAppRecord).filter(GalleryAppRecord.id == gallery_id).update(
            {GalleryAppRecord.downloads: GalleryAppRecord.downloads + 1,
             GalleryAppRecord.updated_at: app.updated_at},
            synchronize_session=False,
        )
        db.commit()
        return True
    except Exception as e:
        logger.error(f"Error incrementing downloads: {e}")
        db.rollback()
        return False


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------

def get_gallery_comments(db, app_id: int):
    """Get comments for a gallery app, oldest first."""
    if not db:
        return []
    try:
        comments = db.query(GalleryCommentRecord).filter(
            GalleryCommentRecord.app_id == app_id
        ).order_by(GalleryCommentRecord.created_at, GalleryCommentRecord.id).all()
        return [_comment_to_dict(c) for c in comments]
    except Exception as e:
        logger.error(f"Error getting gallery comments: {e}")
        return []


def add_gallery_comment(db, app_id: int, user_id: str, text: str):
    """Add a comment to a gallery app.

    Returns:
        The new comment id, or None if the app does not exist or on error.
    """
    if not db:
        return None
    try:
        app = db.query(GalleryAppRecord).filter(GalleryAppRecord.id == app_id).first()
        if not app:
            return None
        comment = GalleryCommentRecord(app_id=app_id, user_id=user_id, text=text)
        db.add(comment)
        db.commit()
        return comment.id
    except Exception as e:
        logger.error(f"Error adding gallery comment: {e}")
        db.rollback()
        return None


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------

def create_project(db, user_id: str, name: str, source_key: str = None,
                   gallery_id: int = None):
    """Create a project for *user_id*; returns the project dict or None."""
    if not db:
        return None
    try:
        project = ProjectRecord(user_id=user_id, name=name, source_key=source_key,
                                gallery_id=gallery_id)
        db.add(project)
        db.commit()
        return _project_to_dict(project)
    except Exception as e:
        logger.error(f"Error creating project: {e}")
        db.rollback()
        return None


def update_project_source(db, project_id: int, source_key: str):
    """Point a project at a new source blob."""
    if not db:
        return False
    try:
        project = db.query(ProjectRecord).filter(ProjectRecord.id == project_id).first()
        if not project:
            return False
        project.source_key = source_key
        db.commit()
        return True
    except Exception as e:
        logger.error(f"Error updating project source: {e}")
        db.rollback()
        return False


def delete_project(db, project_id: int):
    """Delete a project row; returns True if one was removed."""
    if not db:
        return False
    try:
        deleted = db.query(ProjectRecord).filter(ProjectRecord.id == project_id).delete()
        db.commit()
        return bool(deleted)
    except Exception as e:
        logger.error(f"Error deleting project: {e}")
        db.rollback()
        return False


def get_project(db, project_id: int):
    """Get a project dict, or None."""
    if not db:
        return None
    try:
        project = db.query(ProjectRecord).filter(ProjectRecord.id == project_id).first()
        return _project_to_dict(project) if project else None
    except Exception as e:
        logger.error(f"Error getting project: {e}")
        return None


def get_project_names(db, user_id: str):
    """Get the names of all projects owned by *user_id*."""
    if not db:
        return []
    try:
        rows = db.query(ProjectRecord.name).filter(
            ProjectRecord.user_id == user_id
        ).order_by(ProjectRecord.name).all()
        return [r[0] for r in rows]
    except Exception as e:
        logger.error(f"Error getting project names: {e}")
        return []
