"""
gallery_rpc.py
==============
Asynchronous HTTP client for the gallery server.

Every remote call is submitted to a small thread pool and returns a
:class:`concurrent.futures.Future` immediately; the future resolves to the
decoded result or fails with :class:`GalleryRpcError`.

Usage
-----
::

    from gallery_rpc import GalleryRpcClient

    rpc = GalleryRpcClient("http://127.0.0.1:5000", user_id="alice")
    page = rpc.get_recent_apps(0, 10).result()
    # GalleryAppListResult(apps=[...], start=0, total=42)
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any, Callable, Dict, List, Optional, Set

import requests

from gallery import GalleryApp, GalleryAppListResult, GalleryComment, UserProject
from app.services.gallery_settings import GallerySettings

logger = logging.getLogger('gallery.rpc')

_DEFAULT_TIMEOUT = 10  # seconds
_USER_HEADER = 'X-Gallery-User'


class GalleryRpcError(Exception):
    """Raised when a gallery call fails in transport or on the server."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class UnsupportedOperationError(GalleryRpcError):
    """Raised when the server answers a recognised but unsupported query."""


class GalleryRpcClient:
    """Gallery remote calls over HTTP, one future per call.

    Args:
        base_url:    Gallery server URL, e.g. ``"http://127.0.0.1:5000"``.
        user_id:     Sent as the ``X-Gallery-User`` header when given.
        timeout:     HTTP request timeout in seconds.
        max_workers: Size of the request thread pool.
        session:     Optional pre-built :class:`requests.Session`.
    """

    def __init__(self, base_url: str, user_id: Optional[str] = None,
                 timeout: int = _DEFAULT_TIMEOUT, max_workers: int = 4,
                 session: Optional[requests.Session] = None) -> None:
        self._base_url = base_url.rstrip('/')
        self._timeout = timeout
        self._session = session or requests.Session()
        if user_id:
            self._session.headers[_USER_HEADER] = user_id
        self._executor = ThreadPoolExecutor(max_workers=max_workers,
                                            thread_name_prefix='gallery_rpc')
        self._pending: Set[Future] = set()
        self._pending_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Gallery calls
    # ------------------------------------------------------------------

    def publish_app(self, project_id: int, title: str, description: str) -> Future:
        """Resolves to the new gallery app id."""
        return self._submit(
            lambda: self._post('/api/gallery/apps', {
                'project_id': project_id, 'title': title, 'description': description,
            })['gallery_id'])

    def get_recent_apps(self, start: int, count: int) -> Future:
        return self._submit_page('/api/gallery/apps/recent', start, count)

    def get_app(self, gallery_id: int) -> Future:
        """Resolves to a :class:`~gallery.GalleryApp`."""
        return self._submit(
            lambda: GalleryApp.from_dict(self._get(f'/api/gallery/apps/{gallery_id}')))

    def find_apps(self, keywords: str, start: int, count: int) -> Future:
        return self._submit_page('/api/gallery/apps/search', start, count,
                                 keywords=keywords)

    def get_most_downloaded_apps(self, start: int, count: int) -> Future:
        return self._submit_page('/api/gallery/apps/most-downloaded', start, count)

    def delete_app(self, gallery_id: int) -> Future:
        def _call() -> None:
            self._request('DELETE', f'/api/gallery/apps/{gallery_id}')
        return self._submit(_call)

    def get_developer_apps(self, developer_id: str, start: int, count: int) -> Future:
        return self._submit_page(f'/api/gallery/developers/{developer_id}/apps',
                                 start, count)

    def get_featured_app(self, start: int, count: int) -> Future:
        return self._submit_page('/api/gallery/apps/featured', start, count)

    def get_comments(self, app_id: int) -> Future:
        """Resolves to a list of :class:`~gallery.GalleryComment`."""
        def _call() -> List[GalleryComment]:
            data = self._get(f'/api/gallery/apps/{app_id}/comments')
            return [GalleryComment.from_dict(c) for c in data.get('comments', [])]
        return self._submit(_call)

    def publish_comment(self, app_id: int, text: str) -> Future:
        """Resolves to the new comment id."""
        return self._submit(
            lambda: self._post(f'/api/gallery/apps/{app_id}/comments',
                               {'text': text})['comment_id'])

    def app_was_downloaded(self, gallery_id: int) -> Future:
        def _call() -> None:
            self._post(f'/api/gallery/apps/{gallery_id}/downloaded', {})
        return self._submit(_call)

    def new_project_from_gallery(self, project_name: str, source_url: str,
                                 gallery_id: int) -> Future:
        """Resolves to the created :class:`~gallery.UserProject`."""
        return self._submit(
            lambda: UserProject.from_dict(self._post('/api/projects/from-gallery', {
                'project_name': project_name,
                'source_url': source_url,
                'gallery_id': gallery_id,
            })))

    def get_project_names(self) -> Future:
        """Resolves to the names of the current user's projects."""
        return self._submit(
            lambda: [str(n) for n in self._get('/api/projects/names').get('names') or []])

    def store_aia_to_cloud(self, project_id: int) -> Future:
        return self._submit(
            lambda: bool(self._post(f'/api/projects/{project_id}/store-aia', {})['success']))

    def get_gallery_settings(self) -> Future:
        """Resolves to the server's :class:`GallerySettings`."""
        return self._submit(
            lambda: GallerySettings.from_dict(self._get('/api/gallery/settings')))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def wait_for_pending(self, timeout: Optional[float] = None) -> None:
        """Block until every in-flight call, including chained ones, is done."""
        while True:
            with self._pending_lock:
                pending = {f for f in self._pending if not f.done()}
            if not pending:
                return
            _, not_done = wait(pending, timeout=timeout)
            if not_done:
                return

    def close(self) -> None:
        """Shut down the thread pool and the HTTP session."""
        self._executor.shutdown(wait=True)
        self._session.close()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _submit(self, call: Callable[[], Any]) -> Future:
        # The returned future completes inside the worker task, so callbacks
        # chained onto it are registered before the task counts as finished.
        result: Future = Future()

        def _run() -> None:
            if not result.set_running_or_notify_cancel():
                return
            try:
                value = call()
            except Exception as exc:
                result.set_exception(exc)
            else:
                result.set_result(value)

        task = self._executor.submit(_run)
        with self._pending_lock:
            self._pending.add(task)
        task.add_done_callback(self._forget)
        return result

    def _forget(self, future: Future) -> None:
        with self._pending_lock:
            self._pending.discard(future)

    def _submit_page(self, path: str, start: int, count: int, **params) -> Future:
        def _call() -> GalleryAppListResult:
            params.update({'start': start, 'count': count})
            data = self._get(path, params=params)
            if data.get('apps') is None:
                raise UnsupportedOperationError(f'{path} is not supported by the server')
            return GalleryAppListResult.from_dict(data)
        return self._submit(_call)

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict:
        return self._request('GET', path, params=params)

    def _post(self, path: str, payload: Dict[str, Any]) -> Dict:
        return self._request('POST', path, json=payload)

    def _request(self, method: str, path: str, **kwargs) -> Dict:
        url = f'{self._base_url}{path}'
        try:
            resp = self._session.request(method, url, timeout=self._timeout, **kwargs)
        except requests.RequestException as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise GalleryRpcError(f'{method} {path} failed: {exc}') from exc
        if resp.status_code >= 400:
            try:
                message = resp.json().get('error', resp.reason)
            except ValueError:
                message = resp.reason
            logger.warning("%s %s returned HTTP %s: %s", method, path,
                           resp.status_code, message)
            raise GalleryRpcError(f'{method} {path}: {message}',
                                  status_code=resp.status_code)
        try:
            return resp.json()
        except ValueError as exc:
            raise GalleryRpcError(f'{method} {path}: invalid JSON response') from exc
