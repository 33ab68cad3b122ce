#!/usr/bin/env python3
"""
Gallery Server - HTTP endpoints for the community app gallery.
Exposes the gallery remote calls used by ``gallery_client.GalleryClient``.
"""

import argparse
import logging
import os
from functools import wraps
from typing import Tuple

from dotenv import load_dotenv
from flask import Flask, Response, jsonify, request

import database
import gallery
from app.repositories import BlobStore, BlobStoreError
from app.services import GallerySettings, GalleryService, ProjectService
from gallery import GalleryNotFoundError, GalleryStorageError, ProjectNameError
from openapi_spec import build_spec

load_dotenv()

config = gallery.load_config(os.getenv('GALLERY_CONFIG', 'config.json'))

# Initialize logging early so database module logs are captured
log_level = config.get('log_level', 'INFO')
gallery_logger = gallery.setup_logging(log_level)
server_logger = logging.getLogger('gallery.server')
try:
    os.makedirs('logs', exist_ok=True)
    fh = logging.FileHandler('logs/gallery_server.log')
    fh.setFormatter(logging.Formatter('[%(asctime)s] %(levelname)s %(name)s: %(message)s'))
    fh.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    server_logger.addHandler(fh)
except OSError:
    server_logger.warning('Could not create log file handler')

DB_AVAILABLE = database.init_db()
if not DB_AVAILABLE:
    server_logger.warning('Database initialization reported failure')

settings = GallerySettings.from_config(config)
blob_store = BlobStore(config.get('blob_root', '.gallery_blobs'))
_gallery_service = GalleryService(database, blob_store, settings)
_project_service = ProjectService(database, blob_store, settings)

app = Flask(__name__)

MAX_PAGE_SIZE = 100
USER_HEADER = 'X-Gallery-User'


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _current_user() -> str:
    return request.headers.get(USER_HEADER, '').strip()


def require_user(f):
    """Decorator to require a user id on the request"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not _current_user():
            return jsonify({'error': 'Not logged in'}), 401
        return f(*args, **kwargs)
    return decorated_function


def _paging() -> Tuple[int, int]:
    """Read ``start``/``count`` query params.

    Raises:
        ValueError: Not integers, ``start < 0`` or ``count <= 0``.
    """
    start = int(request.args.get('start', 0))
    count = int(request.args.get('count', gallery.NUM_APPS_TO_SHOW))
    if start < 0 or count <= 0:
        raise ValueError('start must be >= 0 and count > 0')
    return start, min(count, MAX_PAGE_SIZE)


def _page(apps, start: int, total: int):
    """Wrap a service list result; ``None`` stays ``null`` (unsupported)."""
    return jsonify({
        'apps': apps,
        'start': start,
        'count': len(apps) if apps is not None else 0,
        'total': total if apps is not None else 0,
    })


def _bad_paging():
    return jsonify({'error': 'start must be an integer >= 0 and count an integer > 0'}), 400


# ---------------------------------------------------------------------------
# Gallery apps
# ---------------------------------------------------------------------------

@app.route('/api/gallery/apps', methods=['POST'])
@require_user
def api_publish_app():
    """Publish a project to the gallery.

    Body JSON: {"project_id": int, "title": str, "description": "optional text"}
    """
    data = request.get_json(silent=True) or {}
    title = (data.get('title') or '').strip()
    try:
        project_id = int(data.get('project_id'))
    except (TypeError, ValueError):
        return jsonify({'error': 'project_id must be an integer'}), 400
    if not title:
        return jsonify({'error': 'title is required'}), 400

    db = next(database.get_db())
    try:
        gallery_id = _gallery_service.publish_app(
            db, project_id, title, data.get('description', ''),
            developer_id=_current_user())
    finally:
        if db:
            db.close()
    if gallery_id is None:
        return jsonify({'error': 'Could not publish app'}), 500
    server_logger.info('Project %s published as gallery app %s', project_id, gallery_id)
    return jsonify({'gallery_id': gallery_id}), 201


@app.route('/api/gallery/apps/recent')
def api_recent_apps():
    """Return a page of the most recently updated apps."""
    try:
        start, count = _paging()
    except ValueError:
        return _bad_paging()
    db = next(database.get_db())
    try:
        apps = _gallery_service.get_recent_apps(db, start, count)
        total = _gallery_service.count_apps(db)
    finally:
        if db:
            db.close()
    return _page(apps, start, total)


@app.route('/api/gallery/apps/search')
def api_find_apps():
    """Keyword search.  Returns ``"apps": null`` while search is unsupported."""
    try:
        start, count = _paging()
    except ValueError:
        return _bad_paging()
    keywords = request.args.get('keywords', '')
    db = next(database.get_db())
    try:
        apps = _gallery_service.find_apps(db, keywords, start, count)
    finally:
        if db:
            db.close()
    return _page(apps, start, len(apps or []))


@app.route('/api/gallery/apps/most-downloaded')
def api_most_downloaded_apps():
    """Most downloaded apps.  Returns ``"apps": null`` while unsupported."""
    try:
        start, count = _paging()
    except ValueError:
        return _bad_paging()
    db = next(database.get_db())
    try:
        apps = _gallery_service.get_most_downloaded_apps(db, start, count)
    finally:
        if db:
            db.close()
    return _page(apps, start, len(apps or []))


@app.route('/api/gallery/apps/featured')
def api_featured_apps():
    """Return a page of featured apps."""
    try:
        start, count = _paging()
    except ValueError:
        return _bad_paging()
    db = next(database.get_db())
    try:
        apps = _gallery_service.get_featured_app(db, start, count)
        total = _gallery_service.count_apps(db, featured=True)
    finally:
        if db:
            db.close()
    return _page(apps, start, total)


@app.route('/api/gallery/developers/<developer_id>/apps')
def api_developer_apps(developer_id: str):
    """Return a page of apps published by *developer_id*."""
    try:
        start, count = _paging()
    except ValueError:
        return _bad_paging()
    db = next(database.get_db())
    try:
        apps = _gallery_service.get_developer_apps(db, developer_id, start, count)
        total = _gallery_service.count_apps(db, developer_id=developer_id)
    finally:
        if db:
            db.close()
    return _page(apps, start, total)


@app.route('/api/gallery/apps/<int:gallery_id>', methods=['GET'])
def api_get_app(gallery_id: int):
    """Return a single gallery app."""
    db = next(database.get_db())
    try:
        found = _gallery_service.get_app(db, gallery_id)
    finally:
        if db:
            db.close()
    if found is None:
        return jsonify({'error': 'No gallery app found'}), 404
    return jsonify(found)


@app.route('/api/gallery/apps/<int:gallery_id>', methods=['DELETE'])
@require_user
def api_delete_app(gallery_id: int):
    """Delete a gallery app (not supported yet; has no effect)."""
    db = next(database.get_db())
    try:
        _gallery_service.delete_app(db, gallery_id)
    finally:
        if db:
            db.close()
    return jsonify({'success': True})


@app.route('/api/gallery/apps/<int:gallery_id>/downloaded', methods=['POST'])
def api_app_was_downloaded(gallery_id: int):
    """Record a download of a gallery app."""
    db = next(database.get_db())
    try:
        ok = _gallery_service.app_was_downloaded(db, gallery_id)
    finally:
        if db:
            db.close()
    if not ok:
        return jsonify({'error': 'No gallery app found'}), 404
    return jsonify({'success': True})


@app.route('/api/gallery/apps/<int:gallery_id>/featured', methods=['POST'])
@require_user
def api_set_featured(gallery_id: int):
    """Mark or unmark a gallery app as featured.

    Body JSON: {"featured": bool}  (defaults to true)
    """
    data = request.get_json(silent=True) or {}
    featured = data.get('featured', True)
    if not isinstance(featured, bool):
        return jsonify({'error': 'featured must be a boolean'}), 400
    db = next(database.get_db())
    try:
        ok = _gallery_service.set_featured(db, gallery_id, featured)
    finally:
        if db:
            db.close()
    if not ok:
        return jsonify({'error': 'No gallery app found'}), 404
    server_logger.info('%s set gallery app %s featured=%s', _current_user(), gallery_id, featured)
    return jsonify({'success': True})


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------

@app.route('/api/gallery/apps/<int:gallery_id>/comments', methods=['GET'])
def api_get_comments(gallery_id: int):
    """Return the comments on a gallery app, oldest first."""
    db = next(database.get_db())
    try:
        comments = _gallery_service.get_comments(db, gallery_id)
    finally:
        if db:
            db.close()
    return jsonify({'comments': comments})


@app.route('/api/gallery/apps/<int:gallery_id>/comments', methods=['POST'])
@require_user
def api_publish_comment(gallery_id: int):
    """Comment on a gallery app.

    Body JSON: {"text": str}
    """
    data = request.get_json(silent=True) or {}
    text = (data.get('text') or '').strip()
    if not text:
        return jsonify({'error': 'text is required'}), 400
    db = next(database.get_db())
    try:
        comment_id = _gallery_service.publish_comment(db, gallery_id, _current_user(), text)
    finally:
        if db:
            db.close()
    if comment_id is None:
        return jsonify({'error': 'No gallery app found'}), 404
    return jsonify({'comment_id': comment_id}), 201


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------

@app.route('/api/projects/names')
@require_user
def api_project_names():
    """Return the names of the current user's projects."""
    db = next(database.get_db())
    try:
        names = _project_service.get_project_names(db, _current_user())
    finally:
        if db:
            db.close()
    return jsonify({'names': names})


@app.route('/api/projects/from-gallery', methods=['POST'])
@require_user
def api_new_project_from_gallery():
    """Create a project for the current user from a gallery app's source.

    Body JSON: {"project_name": str, "source_url": "/gs/<bucket>/...", "gallery_id": int}
    """
    data = request.get_json(silent=True) or {}
    try:
        gallery_id = int(data.get('gallery_id'))
    except (TypeError, ValueError):
        return jsonify({'error': 'gallery_id must be an integer'}), 400
    source_url = data.get('source_url') or settings.get_source_url(gallery_id)

    db = next(database.get_db())
    try:
        project = _project_service.new_project_from_gallery(
            db, _current_user(), data.get('project_name', ''), source_url, gallery_id)
    except ProjectNameError as e:
        return jsonify({'error': str(e)}), 400
    except GalleryNotFoundError as e:
        return jsonify({'error': str(e)}), 404
    except GalleryStorageError as e:
        server_logger.error('Creating project from gallery app %s failed: %s', gallery_id, e)
        return jsonify({'error': str(e)}), 500
    finally:
        if db:
            db.close()
    return jsonify(project), 201


@app.route('/api/projects/<int:project_id>/store-aia', methods=['POST'])
@require_user
def api_store_aia_to_cloud(project_id: int):
    """Copy a published project's source into the gallery bucket."""
    db = next(database.get_db())
    try:
        stored = _gallery_service.store_aia_to_cloud(db, project_id)
    except GalleryNotFoundError as e:
        return jsonify({'error': str(e)}), 404
    except GalleryStorageError as e:
        return jsonify({'error': f'Storing source failed: {e}'}), 500
    finally:
        if db:
            db.close()
    return jsonify({'success': stored})


# ---------------------------------------------------------------------------
# Settings, blobs and API description
# ---------------------------------------------------------------------------

@app.route('/api/gallery/settings')
def api_gallery_settings():
    """Return the gallery settings clients need to locate assets."""
    return jsonify(settings.to_dict())


@app.route('/api/gallery/blobs/<bucket>/<path:key>')
def api_get_blob(bucket: str, key: str):
    """Serve a finalized object from the local blob store."""
    try:
        payload = blob_store.read(bucket, key)
    except BlobStoreError:
        return jsonify({'error': 'Not found'}), 404
    meta = blob_store.get_metadata(bucket, key)
    return Response(payload, mimetype=meta.get('mime_type', 'application/octet-stream'))


@app.route('/api/openapi.json')
def api_openapi_spec():
    """Return the OpenAPI description of this server."""
    return jsonify(build_spec(server_url=request.host_url))


def main():
    """Main entry point for the gallery server"""
    parser = argparse.ArgumentParser(description='Gallery server')
    parser.add_argument('--host', default='127.0.0.1', help='Interface to bind')
    parser.add_argument('--port', type=int, default=5000, help='Port to listen on')
    parser.add_argument('--debug', action='store_true', help='Run Flask in debug mode')
    args = parser.parse_args()

    print("\n" + "=" * 60)
    print("Gallery server is starting...")
    print("=" * 60)
    print(f"\n  http://{args.host}:{args.port}")
    print("\nPress Ctrl+C to stop the server")
    print("=" * 60 + "\n")

    app.run(host=args.host, port=args.port, debug=args.debug, threaded=True)


if __name__ == '__main__':
    main()
