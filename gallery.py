#!/usr/bin/env python3
"""
Gallery - community app gallery for the app-building platform.
Shared data types, configuration, logging and a small command-line browser.
"""

import argparse
import json
import logging
import os
import sys
from enum import IntEnum
from typing import Any, Dict, List, Optional

from colorama import init, Fore, Style

# Initialize colorama for cross-platform colored terminal output
init(autoreset=True)

# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------

def setup_logging(level: str = 'WARNING') -> logging.Logger:
    """Configure the root Gallery logger.

    Args:
        level: Log level string (DEBUG, INFO, WARNING, ERROR, CRITICAL).
               Defaults to WARNING so normal use is quiet.

    Returns:
        Configured logger instance.
    """
    numeric = getattr(logging, level.upper(), logging.WARNING)
    logger = logging.getLogger('gallery')
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter('[%(levelname)s] %(name)s: %(message)s'))
        logger.addHandler(handler)
    logger.setLevel(numeric)
    return logger


logger = setup_logging()

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Page size used when views refresh after an app changed
NUM_APPS_TO_SHOW = 10

PRODUCTION = 'Production'
DEVELOPMENT = 'Development'

DEFAULT_CONFIG = {
    'environment': DEVELOPMENT,
    'bucket': 'galleryai2',
    'server_url': 'http://127.0.0.1:5000',
    'blob_root': '.gallery_blobs',
    'cloud_base_url': 'https://storage.googleapis.com',
    'local_base_url': '/api/gallery/blobs',
    'log_level': 'WARNING',
    'api_timeout_seconds': 10,
}

# User-facing failure messages, one per remote call
MESSAGES = {
    'gallery_search_error': 'Sorry, an error occurred while searching the gallery.',
    'gallery_developer_app_error': "Sorry, an error occurred while loading the developer's apps.",
    'gallery_recent_apps_error': 'Sorry, an error occurred while loading recent gallery apps.',
    'gallery_downloaded_apps_error': 'Sorry, an error occurred while loading the most downloaded apps.',
    'gallery_comment_error': 'Sorry, an error occurred while loading comments.',
    'gallery_error': 'Sorry, an error occurred while contacting the gallery.',
    'create_project_error': 'Server error: could not create project. Please try again later!',
    'load_projects_error': 'Sorry, an error occurred while loading your projects.',
    'malformed_project_name_error': (
        'Project names must start with a letter and can contain only '
        'letters, numbers and underscores.'
    ),
    'duplicate_project_name_error': 'A project named {name} already exists.',
}


class RequestKind(IntEnum):
    """Why an app list arrived; delivered alongside every list result."""
    FEATURED = 1
    RECENT = 2
    SEARCH = 3
    MOST_LIKED = 4
    MOST_DOWNLOADED = 5
    MOST_VIEWED = 6
    BY_DEVELOPER = 7
    BY_TAG = 8
    ALL = 9
    REMIXED_TO = 10


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class GalleryError(Exception):
    """Base class for gallery errors."""


class GalleryNotFoundError(GalleryError):
    """Raised when a gallery app, project or source blob does not exist."""


class GalleryStorageError(GalleryError):
    """Raised when a blob-store write or read fails."""


class ProjectNameError(GalleryError):
    """Raised when a new project name is malformed or already taken."""


# ---------------------------------------------------------------------------
# Data types
# ---------------------------------------------------------------------------

class GalleryApp:
    """A published application record."""

    def __init__(self, gallery_app_id: int, title: str, description: str = '',
                 project_id: Optional[int] = None, project_name: str = '',
                 developer_id: str = '', developer_name: str = '',
                 creation_date: Optional[str] = None,
                 update_date: Optional[str] = None,
                 downloads: int = 0, views: int = 0, likes: int = 0,
                 comments: int = 0, featured: bool = False,
                 active: bool = True):
        self.gallery_app_id = gallery_app_id
        self.title = title
        self.description = description
        self.project_id = project_id
        self.project_name = project_name
        self.developer_id = developer_id
        self.developer_name = developer_name
        self.creation_date = creation_date
        self.update_date = update_date
        self.downloads = downloads
        self.views = views
        self.likes = likes
        self.comments = comments
        self.featured = featured
        self.active = active

    def increment_downloads(self) -> int:
        self.downloads += 1
        return self.downloads

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GalleryApp':
        return cls(
            gallery_app_id=data['gallery_app_id'],
            title=data.get('title', ''),
            description=data.get('description', ''),
            project_id=data.get('project_id'),
            project_name=data.get('project_name', ''),
            developer_id=data.get('developer_id', ''),
            developer_name=data.get('developer_name', ''),
            creation_date=data.get('creation_date'),
            update_date=data.get('update_date'),
            downloads=data.get('downloads', 0),
            views=data.get('views', 0),
            likes=data.get('likes', 0),
            comments=data.get('comments', 0),
            featured=data.get('featured', False),
            active=data.get('active', True),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'gallery_app_id': self.gallery_app_id,
            'title': self.title,
            'description': self.description,
            'project_id': self.project_id,
            'project_name': self.project_name,
            'developer_id': self.developer_id,
            'developer_name': self.developer_name,
            'creation_date': self.creation_date,
            'update_date': self.update_date,
            'downloads': self.downloads,
            'views': self.views,
            'likes': self.likes,
            'comments': self.comments,
            'featured': self.featured,
            'active': self.active,
        }

    def __repr__(self) -> str:
        return f"GalleryApp(id={self.gallery_app_id!r}, title={self.title!r})"


class GalleryAppListResult:
    """An ordered page of apps plus paging metadata.

    ``count`` is the number of apps in this page and ``total`` the number of
    apps available for the query.
    """

    def __init__(self, apps: List[GalleryApp], start: int = 0,
                 total: Optional[int] = None):
        self._apps = tuple(apps)
        self.start = start
        self.total = len(self._apps) if total is None else total

    @property
    def apps(self) -> List[GalleryApp]:
        return list(self._apps)

    @property
    def count(self) -> int:
        return len(self._apps)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GalleryAppListResult':
        apps = [GalleryApp.from_dict(a) for a in data.get('apps') or []]
        return cls(apps, start=data.get('start', 0), total=data.get('total'))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'apps': [a.to_dict() for a in self._apps],
            'start': self.start,
            'count': self.count,
            'total': self.total,
        }

    def __len__(self) -> int:
        return len(self._apps)

    def __iter__(self):
        return iter(self._apps)


class GalleryComment:
    """Free-text feedback bound to one gallery app."""

    def __init__(self, comment_id: int, app_id: int, user_id: str, text: str,
                 time_stamp: Optional[str] = None):
        self.comment_id = comment_id
        self.app_id = app_id
        self.user_id = user_id
        self.text = text
        self.time_stamp = time_stamp

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GalleryComment':
        return cls(
            comment_id=data['comment_id'],
            app_id=data['app_id'],
            user_id=data.get('user_id', ''),
            text=data.get('text', ''),
            time_stamp=data.get('time_stamp'),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'comment_id': self.comment_id,
            'app_id': self.app_id,
            'user_id': self.user_id,
            'text': self.text,
            'time_stamp': self.time_stamp,
        }


class UserProject:
    """Descriptor of a project created for a user."""

    def __init__(self, project_id: int, project_name: str, user_id: str = '',
                 gallery_id: Optional[int] = None,
                 date_created: Optional[str] = None):
        self.project_id = project_id
        self.project_name = project_name
        self.user_id = user_id
        self.gallery_id = gallery_id
        self.date_created = date_created

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'UserProject':
        return cls(
            project_id=data['project_id'],
            project_name=data['project_name'],
            user_id=data.get('user_id', ''),
            gallery_id=data.get('gallery_id'),
            date_created=data.get('date_created'),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'project_id': self.project_id,
            'project_name': self.project_name,
            'user_id': self.user_id,
            'gallery_id': self.gallery_id,
            'date_created': self.date_created,
        }


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

_ENV_OVERRIDES = {
    'GALLERY_ENVIRONMENT': 'environment',
    'GALLERY_BUCKET': 'bucket',
    'GALLERY_SERVER_URL': 'server_url',
    'GALLERY_BLOB_ROOT': 'blob_root',
    'GALLERY_LOG_LEVEL': 'log_level',
}


def is_placeholder_value(value: str) -> bool:
    """Return True for empty values and template placeholders like ``YOUR_...``."""
    return not value or not str(value).strip() or str(value).startswith('YOUR_')


def load_config(config_path: str = 'config.json') -> Dict[str, Any]:
    """Load configuration from JSON file with environment variable support.

    Missing files are not an error: defaults are used.  Environment
    variables take precedence over config file values:

    - GALLERY_ENVIRONMENT overrides environment ("Production"/"Development")
    - GALLERY_BUCKET overrides bucket
    - GALLERY_SERVER_URL overrides server_url
    - GALLERY_BLOB_ROOT overrides blob_root
    - GALLERY_LOG_LEVEL overrides log_level
    """
    config = dict(DEFAULT_CONFIG)
    if os.path.exists(config_path):
        try:
            with open(config_path, 'r') as f:
                loaded = json.load(f)
            config.update({k: v for k, v in loaded.items()
                           if not is_placeholder_value(v)})
        except (json.JSONDecodeError, IOError) as e:
            logger.warning("Could not load %s: %s", config_path, e)

    for env_name, key in _ENV_OVERRIDES.items():
        if os.getenv(env_name):
            config[key] = os.getenv(env_name)
    return config


# ---------------------------------------------------------------------------
# Command-line browser
# ---------------------------------------------------------------------------

def _print_app(app: GalleryApp) -> None:
    print(f"{Fore.CYAN}{Style.BRIGHT}#{app.gallery_app_id} {app.title}")
    if app.developer_name or app.developer_id:
        print(f"   {Fore.WHITE}by {app.developer_name or app.developer_id}")
    print(f"   {Fore.GREEN}Downloads: {app.downloads}  Views: {app.views}  Likes: {app.likes}")


class ConsoleListener:
    """Gallery request listener that prints results to the terminal."""

    def on_app_list_request_completed(self, result: GalleryAppListResult,
                                      request_kind: RequestKind,
                                      refreshable: bool) -> None:
        label = request_kind.name.replace('_', ' ').title()
        print(f"\n{Fore.YELLOW}{Style.BRIGHT}{label} "
              f"({result.start + 1}-{result.start + result.count} of {result.total})")
        if not result.count:
            print(f"{Fore.YELLOW}No apps found.")
        for app in result:
            _print_app(app)

    def on_comments_request_completed(self, comments: List[GalleryComment]) -> None:
        print(f"\n{Fore.YELLOW}{Style.BRIGHT}Comments ({len(comments)})")
        for comment in comments:
            print(f"{Fore.WHITE}[{comment.time_stamp}] {comment.user_id}: {comment.text}")


def _print_error(message: str) -> None:
    print(f"{Fore.RED}{message}")


def main():
    """Main entry point"""
    parser = argparse.ArgumentParser(
        description='Gallery - browse community published apps',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python3 gallery.py recent                 # Most recently published apps
  python3 gallery.py downloaded             # Most downloaded apps
  python3 gallery.py search "flappy bird"   # Keyword search
  python3 gallery.py developer alice        # Apps published by alice
  python3 gallery.py comments 42            # Comments on app 42
  python3 gallery.py open 42 MyCopy         # Open app 42 as project MyCopy
        """
    )
    parser.add_argument('--config', '-c', default='config.json',
                        help='Path to config file (default: config.json)')
    parser.add_argument('--server', help='Gallery server URL (overrides config)')
    parser.add_argument('--user', help='User id sent with requests')
    parser.add_argument('--start', type=int, default=0, help='Starting index')
    parser.add_argument('--count', type=int, default=NUM_APPS_TO_SHOW,
                        help='Number of results')
    parser.add_argument('command', choices=['recent', 'downloaded', 'featured',
                                            'search', 'developer', 'comments',
                                            'open'])
    parser.add_argument('args', nargs='*', help='Command arguments')
    args = parser.parse_args()

    config = load_config(args.config)
    setup_logging(config.get('log_level', 'WARNING'))

    from app.services.gallery_settings import GallerySettings
    from gallery_client import GalleryClient
    from gallery_rpc import GalleryRpcClient

    rpc = GalleryRpcClient(args.server or config['server_url'], user_id=args.user,
                           timeout=int(config.get('api_timeout_seconds', 10)))
    client = GalleryClient(rpc, settings=GallerySettings.from_config(config),
                           error_handler=_print_error)
    client.set_system_environment(config.get('environment'))
    client.add_listener(ConsoleListener())

    try:
        if args.command == 'recent':
            client.get_most_recent(args.start, args.count, False)
        elif args.command == 'downloaded':
            client.get_most_downloaded(args.start, args.count, False)
        elif args.command == 'featured':
            client.get_featured(args.start, args.count, 0, False)
        elif args.command == 'search':
            if not args.args:
                parser.error('search requires keywords')
            client.find_apps(' '.join(args.args), args.start, args.count, 0, False)
        elif args.command == 'developer':
            if not args.args:
                parser.error('developer requires a developer id')
            client.get_apps_by_developer(args.start, args.count, args.args[0])
        elif args.command == 'comments':
            if not args.args:
                parser.error('comments requires an app id')
            client.get_comments(int(args.args[0]), args.start, args.count)
        elif args.command == 'open':
            if len(args.args) < 2:
                parser.error('open requires an app id and a new project name')
            app = rpc.get_app(int(args.args[0])).result()
            client.load_project_names()
            rpc.wait_for_pending()
            if client.load_source_file(app, args.args[1]):
                print(f"{Fore.GREEN}Creating project {args.args[1]}...")
            else:
                sys.exit(1)
        rpc.wait_for_pending()
    except KeyboardInterrupt:
        print(f"\n{Fore.YELLOW}Interrupted.")
    except Exception as e:
        logger.error("Gallery request failed: %s", e)
        _print_error(str(e))
        sys.exit(1)
    finally:
        rpc.close()


if __name__ == '__main__':
    main()
