"""
gallery_client.py
=================
Client-side facade the UI uses to talk to the gallery server.

One :class:`GalleryClient` serves the whole process.  Each query issues one
remote call and, when it succeeds, broadcasts the result to every registered
:class:`GalleryRequestListener` together with the :class:`~gallery.RequestKind`
that produced it.  A failed call reports its user-facing message once through
the error handler and reaches no listener.

Usage
-----
::

    from gallery_client import GalleryClient, get_gallery_client
    from gallery_rpc import GalleryRpcClient

    client = get_gallery_client(lambda: GalleryClient(GalleryRpcClient(url)))
    registration = client.add_listener(my_gallery_list)
    client.get_most_recent(0, 10, refreshable=False)
    ...
    registration.remove()
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from typing import Callable, List, Optional

from gallery import (
    MESSAGES, NUM_APPS_TO_SHOW, PRODUCTION, RequestKind,
    GalleryApp, GalleryAppListResult, GalleryComment, UserProject,
)
from app.services.gallery_settings import GallerySettings
from app.services.project_name_validator import ProjectNameValidator

logger = logging.getLogger('gallery.client')


class GalleryRequestListener:
    """Receives gallery results.  Override the callbacks you need."""

    def on_app_list_request_completed(self, result: GalleryAppListResult,
                                      request_kind: RequestKind,
                                      refreshable: bool) -> None:
        pass

    def on_comments_request_completed(self, comments: List[GalleryComment]) -> None:
        pass


class ListenerRegistration:
    """Handle returned by :meth:`GalleryClient.add_listener`."""

    def __init__(self, client: 'GalleryClient', listener: GalleryRequestListener) -> None:
        self._client = client
        self.listener = listener
        self.active = True

    def remove(self) -> bool:
        """Stop deliveries to the listener.  Returns ``False`` if already removed."""
        if not self.active:
            return False
        self.active = False
        return self._client._remove_registration(self)


class ProjectManager:
    """The user's projects as known to this client."""

    def __init__(self, projects: Optional[List[UserProject]] = None) -> None:
        self._projects: List[UserProject] = list(projects or [])
        self._remote_names: List[str] = []
        self._lock = threading.Lock()

    def set_remote_names(self, names: List[str]) -> None:
        """Replace the project names the server reported for this user."""
        with self._lock:
            self._remote_names = list(names)
        logger.debug("Loaded %d project names from the server", len(names))

    def add_project(self, project: UserProject) -> UserProject:
        with self._lock:
            self._projects.append(project)
        logger.info("Project %s (%s) added", project.project_id, project.project_name)
        return project

    def get_projects(self) -> List[UserProject]:
        with self._lock:
            return list(self._projects)

    def project_names(self) -> List[str]:
        """Names known from the server plus projects created since."""
        with self._lock:
            names = list(self._remote_names)
            local = [p.project_name for p in self._projects]
        names.extend(n for n in local if n not in names)
        return names


class AsyncCallback:
    """Completion handler for one remote call.

    ``on_success`` receives the decoded result.  A failure invokes the error
    handler with *failure_message* exactly once.
    """

    def __init__(self, failure_message: str,
                 on_success: Callable[[object], None],
                 error_handler: Callable[[str], None]) -> None:
        self.failure_message = failure_message
        self._on_success = on_success
        self._error_handler = error_handler

    def complete(self, future: Future) -> None:
        exc = future.exception()
        if exc is not None:
            self.on_failure(exc)
            return
        self._on_success(future.result())

    def on_failure(self, exc: BaseException) -> None:
        logger.warning("%s (%s)", self.failure_message, exc)
        self._error_handler(self.failure_message)


def _log_error(message: str) -> None:
    logger.error(message)


class GalleryClient:
    """Facade for the UI to talk to the gallery server.

    Args:
        rpc:             Object exposing the gallery remote calls as methods
                         returning futures (see :class:`gallery_rpc.GalleryRpcClient`).
        settings:        Gallery settings; defaults to development settings.
        validator:       Project name validator; defaults to one checking the
                         names known to *project_manager*.
        project_manager: Receives projects created from gallery apps.
        error_handler:   Called with the user-facing message of a failed call.
        dispatcher:      Runs completion callbacks.  Pass the UI loop's
                         ``call_soon``-style function to deliver results on the
                         UI thread; by default callbacks run where the call
                         completed.
    """

    def __init__(self, rpc, settings: Optional[GallerySettings] = None,
                 validator: Optional[ProjectNameValidator] = None,
                 project_manager: Optional[ProjectManager] = None,
                 error_handler: Optional[Callable[[str], None]] = None,
                 dispatcher: Optional[Callable[[Callable[[], None]], None]] = None) -> None:
        self._rpc = rpc
        self._settings = settings or GallerySettings()
        self._error_handler = error_handler or _log_error
        self._dispatcher = dispatcher
        self.project_manager = project_manager or ProjectManager()
        self._validator = validator or ProjectNameValidator(
            self.project_manager.project_names, self._error_handler)
        self._registrations: List[ListenerRegistration] = []
        self._listeners_lock = threading.Lock()
        self._environment: Optional[str] = None

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_listener(self, listener: GalleryRequestListener) -> ListenerRegistration:
        """Register *listener*; deliveries follow registration order."""
        registration = ListenerRegistration(self, listener)
        with self._listeners_lock:
            self._registrations.append(registration)
        return registration

    def _remove_registration(self, registration: ListenerRegistration) -> bool:
        with self._listeners_lock:
            try:
                self._registrations.remove(registration)
            except ValueError:
                return False
        return True

    def _listeners_snapshot(self) -> List[GalleryRequestListener]:
        with self._listeners_lock:
            return [r.listener for r in self._registrations]

    def _notify_app_list(self, result: GalleryAppListResult,
                         request_kind: RequestKind, refreshable: bool) -> None:
        for listener in self._listeners_snapshot():
            try:
                listener.on_app_list_request_completed(result, request_kind, refreshable)
            except Exception:
                logger.exception("Listener %r failed on %s result", listener,
                                 request_kind.name)

    def _notify_comments(self, comments: List[GalleryComment]) -> None:
        for listener in self._listeners_snapshot():
            try:
                listener.on_comments_request_completed(comments)
            except Exception:
                logger.exception("Listener %r failed on comments result", listener)

    # ------------------------------------------------------------------
    # Remote call plumbing
    # ------------------------------------------------------------------

    def _dispatch(self, future: Future, message_key: str,
                  on_success: Callable[[object], None]) -> None:
        callback = AsyncCallback(MESSAGES[message_key], on_success, self._error_handler)
        if self._dispatcher is None:
            future.add_done_callback(callback.complete)
        else:
            future.add_done_callback(
                lambda f: self._dispatcher(lambda: callback.complete(f)))

    def _request_app_list(self, future: Future, message_key: str,
                          request_kind: RequestKind, refreshable: bool) -> None:
        self._dispatch(future, message_key,
                       lambda result: self._notify_app_list(result, request_kind,
                                                            refreshable))

    @staticmethod
    def _check_page(start: int, count: int) -> None:
        if start < 0:
            raise ValueError(f'start must be >= 0, got {start}')
        if count <= 0:
            raise ValueError(f'count must be > 0, got {count}')

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def find_apps(self, keywords: str, start: int, count: int, sort_order: int = 0,
                  refreshable: bool = False) -> None:
        """Search the gallery for *keywords*.  *sort_order* is currently unused."""
        self._check_page(start, count)
        self._request_app_list(self._rpc.find_apps(keywords, start, count),
                               'gallery_search_error', RequestKind.SEARCH, refreshable)

    def get_apps_by_developer(self, start: int, count: int, developer_id: str) -> None:
        """Get the apps published by *developer_id*."""
        self._check_page(start, count)
        self._request_app_list(self._rpc.get_developer_apps(developer_id, start, count),
                               'gallery_developer_app_error', RequestKind.BY_DEVELOPER,
                               False)

    def get_featured(self, start: int, count: int, sort_order: int = 0,
                     refreshable: bool = False) -> None:
        """Get featured apps.  *sort_order* is currently unused."""
        self._check_page(start, count)
        self._request_app_list(self._rpc.get_featured_app(start, count),
                               'gallery_recent_apps_error', RequestKind.FEATURED,
                               refreshable)

    def get_most_recent(self, start: int, count: int, refreshable: bool = False) -> None:
        """Get the most recently updated apps."""
        self._check_page(start, count)
        self._request_app_list(self._rpc.get_recent_apps(start, count),
                               'gallery_recent_apps_error', RequestKind.RECENT,
                               refreshable)

    def get_most_downloaded(self, start: int, count: int,
                            refreshable: bool = False) -> None:
        """Get the most downloaded apps."""
        self._check_page(start, count)
        self._request_app_list(self._rpc.get_most_downloaded_apps(start, count),
                               'gallery_downloaded_apps_error',
                               RequestKind.MOST_DOWNLOADED, refreshable)

    def get_remixed_to_list(self, result: GalleryAppListResult) -> None:
        """Broadcast a remix list the caller already has; no remote call."""
        self._notify_app_list(result, RequestKind.REMIXED_TO, True)

    def get_most_viewed(self, start: int, count: int) -> None:
        """Not supported yet."""

    def get_most_liked(self, start: int, count: int) -> None:
        """Not supported yet."""

    def get_comments(self, app_id: int, start: int, count: int) -> None:
        """Get the comments on *app_id*."""
        self._dispatch(self._rpc.get_comments(app_id), 'gallery_comment_error',
                       self._notify_comments)

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def load_project_names(self) -> None:
        """Fetch the user's existing project names for duplicate checks."""
        self._dispatch(self._rpc.get_project_names(), 'load_projects_error',
                       self.project_manager.set_remote_names)

    def load_source_file(self, app: GalleryApp, new_project_name: str) -> bool:
        """Open *app* as a new project named *new_project_name*.

        Returns:
            ``True`` once the request is sent, ``False`` if the name was
            rejected (the validator has already told the user why).
        """
        if not self._validator.check_new_project_name(new_project_name):
            return False
        gallery_id = app.gallery_app_id
        source_url = self._settings.get_source_url(gallery_id)
        future = self._rpc.new_project_from_gallery(new_project_name, source_url,
                                                    gallery_id)
        self._dispatch(future, 'create_project_error', self.project_manager.add_project)
        return True

    def app_was_changed(self) -> None:
        """Refresh the recent and popular lists after an app changed."""
        self.get_most_recent(0, NUM_APPS_TO_SHOW, True)
        self.get_most_downloaded(0, NUM_APPS_TO_SHOW, True)

    def app_was_downloaded(self, gallery_id: int) -> None:
        """Tell the server *gallery_id* was downloaded."""
        def _downloaded(_result) -> None:
            # The local copy is updated for display only
            self._dispatch(self._rpc.get_app(gallery_id), 'gallery_error',
                           lambda app: app.increment_downloads())

        self._dispatch(self._rpc.app_was_downloaded(gallery_id),
                       'gallery_downloaded_apps_error', _downloaded)

    # ------------------------------------------------------------------
    # Settings and asset locations
    # ------------------------------------------------------------------

    def get_gallery_settings(self) -> GallerySettings:
        return self._settings

    def get_bucket(self) -> str:
        return self._settings.bucket

    def set_system_environment(self, value: Optional[str]) -> None:
        self._environment = value

    def get_system_environment(self) -> Optional[str]:
        return self._environment

    def _in_production(self) -> bool:
        # An explicit system environment overrides the settings
        if self._environment is None:
            return self._settings.is_production()
        return str(self._environment) == PRODUCTION

    def get_cloud_image_url(self, gallery_id: int) -> str:
        if self._in_production():
            return self._settings.get_cloud_image_url(gallery_id)
        return self._settings.get_cloud_image_location(gallery_id)

    def get_project_image_url(self, project_id: int) -> str:
        if self._in_production():
            return self._settings.get_project_image_url(project_id)
        return self._settings.get_project_image_location(project_id)

    def get_user_image_url(self, user_id: str) -> str:
        if self._in_production():
            return self._settings.get_user_image_url(user_id)
        return self._settings.get_user_image_location(user_id)


# ---------------------------------------------------------------------------
# Process-wide instance
# ---------------------------------------------------------------------------

_client: Optional[GalleryClient] = None
_client_lock = threading.Lock()


def get_gallery_client(factory: Optional[Callable[[], GalleryClient]] = None) -> GalleryClient:
    """Return the process-wide client, creating it with *factory* on first use.

    Raises:
        RuntimeError: No client exists yet and no *factory* was given.
    """
    global _client
    with _client_lock:
        if _client is None:
            if factory is None:
                raise RuntimeError('Gallery client is not initialized')
            _client = factory()
        return _client


def set_gallery_client(client: GalleryClient) -> None:
    """Install *client* as the process-wide instance (startup code)."""
    global _client
    with _client_lock:
        _client = client


def reset_gallery_client() -> None:
    global _client
    with _client_lock:
        _client = None
