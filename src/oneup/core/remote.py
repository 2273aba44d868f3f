"""Remote replica client.

``RemoteStore`` is the hierarchical key-value interface the sync engine
talks to.  ``FirebaseRestStore`` implements it on top of the Firebase
Realtime Database REST API:

* ``GET/PUT/DELETE {database_url}/{path}.json`` for reads and writes.
* The ``text/event-stream`` endpoint for live listeners, consumed in a
  daemon thread that keeps a local copy of the listened subtree and hands
  the full value to the callback after every ``put``/``patch`` event.

All calls block; async callers wrap them with ``run_sync``.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Callable
from typing import Any, Protocol

import requests

logger = logging.getLogger(__name__)

# Placeholder resolved by the server to its own write time.
SERVER_TIMESTAMP = {".sv": "timestamp"}

Unsubscribe = Callable[[], None]


class RemoteStoreError(Exception):
    """A remote read or write failed.

    Attributes:
        status_code: HTTP status returned by the server, if any.
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code

    @property
    def permission_denied(self) -> bool:
        return self.status_code in (401, 403)


class RemoteStore(Protocol):
    """Protocol for the remote hierarchical key-value store."""

    def get(self, path: str) -> Any | None:
        """Return the value at *path*, or ``None`` when absent."""
        ...  # pragma: no cover

    def set(self, path: str, value: Any) -> None:
        """Replace the value at *path*."""
        ...  # pragma: no cover

    def delete(self, path: str) -> None:
        """Remove the value at *path*."""
        ...  # pragma: no cover

    def listen(
        self, path: str, callback: Callable[[Any], None]
    ) -> Unsubscribe:
        """Call *callback* with the full value at *path* whenever it changes.

        Returns a callable that stops the listener.  The callback may be
        invoked from another thread.
        """
        ...  # pragma: no cover


class FirebaseRestStore:
    """Firebase Realtime Database client over REST.

    Args:
        database_url: Base URL, e.g. ``https://oneup-default-rtdb.firebaseio.com``.
        auth_token: ID token or database secret sent as ``auth`` parameter.
        timeout: Read timeout in seconds for non-streaming requests.
        reconnect_delay: Seconds to wait before re-opening a dropped stream.
    """

    def __init__(
        self,
        database_url: str,
        auth_token: str | None = None,
        timeout: float = 30.0,
        reconnect_delay: float = 5.0,
    ) -> None:
        self.database_url = database_url.rstrip("/")
        self.auth_token = auth_token
        self.timeout = timeout
        self.reconnect_delay = reconnect_delay
        self._thread_local = threading.local()

    @property
    def session(self) -> requests.Session:
        """Session of the calling thread."""
        return self._get_session()

    def _get_session(self) -> requests.Session:
        """Get or create a thread-local requests.Session."""
        if not hasattr(self._thread_local, "session"):
            self._thread_local.session = requests.Session()
        return self._thread_local.session

    def url_for(self, path: str) -> str:
        return f"{self.database_url}/{path.strip('/')}.json"

    def _params(self) -> dict[str, str]:
        return {"auth": self.auth_token} if self.auth_token else {}

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = self._get_session().request(
                method,
                self.url_for(path),
                params=self._params(),
                timeout=(10, self.timeout),
                **kwargs,
            )
        except requests.RequestException as exc:
            raise RemoteStoreError(
                f"{method} {path} failed: {exc}"
            ) from exc

        if response.status_code >= 400:
            detail = _error_detail(response)
            raise RemoteStoreError(
                f"{method} {path} failed with HTTP "
                f"{response.status_code}: {detail}",
                status_code=response.status_code,
            )
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise RemoteStoreError(
                f"{method} {path} returned invalid JSON: {exc}"
            ) from exc

    # ------------------------------------------------------------------
    # RemoteStore interface
    # ------------------------------------------------------------------

    def get(self, path: str) -> Any | None:
        return self._request("GET", path)

    def set(self, path: str, value: Any) -> None:
        self._request("PUT", path, json=value)

    def delete(self, path: str) -> None:
        self._request("DELETE", path)

    def listen(
        self, path: str, callback: Callable[[Any], None]
    ) -> Unsubscribe:
        listener = _StreamListener(self, path, callback)
        listener.start()
        logger.debug("Listening to %s", path)
        return listener.stop


class _StreamListener(threading.Thread):
    """Consume a Firebase event stream and replay it as full values."""

    def __init__(
        self,
        store: FirebaseRestStore,
        path: str,
        callback: Callable[[Any], None],
    ) -> None:
        super().__init__(daemon=True, name=f"firebase-listen:{path}")
        self._store = store
        self._path = path
        self._callback = callback
        self._stop_event = threading.Event()
        self._response: requests.Response | None = None
        self._value: Any = None

    def stop(self) -> None:
        self._stop_event.set()
        response = self._response
        if response is not None:
            response.close()

    def run(self) -> None:
        while not self._stop_event.is_set():
            try:
                self._consume()
            except (requests.RequestException, RemoteStoreError) as exc:
                if self._stop_event.is_set():
                    break
                logger.warning(
                    "Stream for %s dropped (%s), reconnecting in %.0fs",
                    self._path,
                    exc,
                    self._store.reconnect_delay,
                )
                self._stop_event.wait(self._store.reconnect_delay)

    def _consume(self) -> None:
        with requests.Session() as session:
            response = session.get(
                self._store.url_for(self._path),
                params=self._store._params(),
                headers={"Accept": "text/event-stream"},
                stream=True,
                timeout=(10, None),
            )
            self._response = response
            if response.status_code >= 400:
                raise RemoteStoreError(
                    f"stream {self._path} failed with HTTP "
                    f"{response.status_code}",
                    status_code=response.status_code,
                )

            event: str | None = None
            for line in response.iter_lines(decode_unicode=True):
                if self._stop_event.is_set():
                    return
                if not line:
                    continue
                if line.startswith("event:"):
                    event = line[len("event:") :].strip()
                elif line.startswith("data:"):
                    self._dispatch(event, line[len("data:") :].strip())

    def _dispatch(self, event: str | None, data: str) -> None:
        match event:
            case "put" | "patch":
                try:
                    payload = json.loads(data)
                    self._value = apply_event(
                        self._value, event, payload["path"], payload["data"]
                    )
                except (
                    ValueError,
                    KeyError,
                    TypeError,
                    AttributeError,
                ) as exc:
                    logger.warning(
                        "Skipping malformed %s event on %s: %s",
                        event,
                        self._path,
                        exc,
                    )
                    return
                if self._value is None:
                    return
                try:
                    self._callback(self._value)
                except Exception:
                    logger.exception(
                        "Listener callback for %s failed", self._path
                    )
            case "cancel" | "auth_revoked":
                logger.warning(
                    "Stream for %s closed by server: %s", self._path, event
                )
                self._stop_event.set()
            case _:
                # keep-alive and unknown events
                pass


def apply_event(current: Any, event: str, path: str, data: Any) -> Any:
    """Apply a Firebase ``put``/``patch`` event to a cached value.

    ``put`` replaces the value at *path* (``None`` deletes it); ``patch``
    merges the children of *data* into the value at *path*.
    """
    keys = [key for key in path.split("/") if key]
    if event == "patch" and isinstance(data, dict):
        for child, value in data.items():
            child_keys = [key for key in child.split("/") if key]
            current = _set_at(current, keys + child_keys, value)
        return current
    return _set_at(current, keys, data)


def _set_at(current: Any, keys: list[str], value: Any) -> Any:
    if not keys:
        return value
    node = dict(current) if isinstance(current, dict) else {}
    head, rest = keys[0], keys[1:]
    child = _set_at(node.get(head), rest, value)
    if child is None:
        node.pop(head, None)
    else:
        node[head] = child
    return node or None


def _error_detail(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason or "unknown error"
    if isinstance(body, dict) and "error" in body:
        return str(body["error"])
    return str(body)
