"""Thin synchronous wrapper around the Syncthing REST API."""

from __future__ import annotations

from typing import Any, Iterable, MutableMapping, Optional

import httpx

from .errors import RequestError, ResponseError
from .logging import get_logger, redact_mapping

API_KEY_HEADER = "X-API-Key"
DEFAULT_TIMEOUT = 10.0

logger = get_logger("syncthing_cli.api")


class SyncthingClient:
    """One method per daemon endpoint; each performs a single request."""

    def __init__(
        self,
        api_key: str,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        verify: bool = False,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        headers = {API_KEY_HEADER: api_key, "Accept": "application/json"}
        # Syncthing serves a self-signed certificate unless the user installed one.
        self._http = httpx.Client(
            base_url=self.base_url,
            headers=headers,
            timeout=timeout,
            verify=verify,
            transport=transport,
        )

    def __enter__(self) -> "SyncthingClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        self._http.close()

    def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[MutableMapping[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        params = {k: v for k, v in (params or {}).items() if v is not None}
        logger.debug(
            "Request %s %s",
            method,
            endpoint,
            extra={"params": params, "headers": redact_mapping(self._http.headers)},
        )
        try:
            response = self._http.request(
                method,
                endpoint,
                params=params or None,
                timeout=timeout if timeout is not None else self.timeout,
            )
        except httpx.TimeoutException as exc:
            raise RequestError(f"Request to {self.base_url}{endpoint} timed out") from exc
        except httpx.RequestError as exc:
            raise RequestError(
                f"Cannot connect to Syncthing at {self.base_url}: {exc}"
            ) from exc
        return _handle_response(response)

    def _get(self, endpoint: str, **params: Any) -> Any:
        return self._request("GET", endpoint, params)

    def _post(self, endpoint: str, **params: Any) -> Any:
        return self._request("POST", endpoint, params)

    # System endpoints
    def status(self) -> Any:
        return self._get("/rest/system/status")

    def version(self) -> Any:
        return self._get("/rest/system/version")

    def connections(self) -> Any:
        return self._get("/rest/system/connections")

    def errors(self) -> Any:
        return self._get("/rest/system/error")

    def clear_errors(self) -> Any:
        return self._post("/rest/system/error/clear")

    def restart(self) -> Any:
        return self._post("/rest/system/restart")

    def shutdown(self) -> Any:
        return self._post("/rest/system/shutdown")

    # Config endpoints
    def config(self) -> Any:
        return self._get("/rest/config")

    def config_folders(self) -> Any:
        return self._get("/rest/config/folders")

    def config_devices(self) -> Any:
        return self._get("/rest/config/devices")

    # Database endpoints
    def folder_status(self, folder: str) -> Any:
        return self._get("/rest/db/status", folder=folder)

    def completion(self, folder: Optional[str] = None, device: Optional[str] = None) -> Any:
        return self._get("/rest/db/completion", folder=folder, device=device)

    def need(self, folder: str) -> Any:
        return self._get("/rest/db/need", folder=folder)

    def scan(self, folder: Optional[str] = None, sub: Optional[str] = None) -> Any:
        """Rescan ``folder``, or every folder when it is omitted."""

        return self._post("/rest/db/scan", folder=folder, sub=sub)

    # Stats endpoints
    def folder_stats(self) -> Any:
        return self._get("/rest/stats/folder")

    def device_stats(self) -> Any:
        return self._get("/rest/stats/device")

    # Cluster endpoints
    def pending_devices(self) -> Any:
        return self._get("/rest/cluster/pending/devices")

    def pending_folders(self) -> Any:
        return self._get("/rest/cluster/pending/folders")

    # Folder endpoints
    def folder_errors(self, folder: str) -> Any:
        return self._get("/rest/folder/errors", folder=folder)

    def events(
        self,
        since: Optional[int] = None,
        limit: Optional[int] = None,
        event_types: Optional[Iterable[str]] = None,
        wait: Optional[int] = None,
    ) -> Any:
        """Fetch buffered events.

        The daemon long-polls until an event newer than ``since`` exists, for
        at most ``wait`` seconds, so the HTTP timeout is extended accordingly.
        """

        params = {
            "since": since,
            "limit": limit,
            "events": ",".join(event_types) if event_types else None,
            "timeout": wait,
        }
        timeout = self.timeout + wait if wait is not None else None
        return self._request("GET", "/rest/events", params, timeout=timeout)


def _handle_response(response: httpx.Response) -> Any:
    try:
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        detail = response.text.strip() or response.reason_phrase
        raise ResponseError(
            f"API error ({response.status_code}): {detail}",
            status_code=response.status_code,
        ) from exc
    # Some POST endpoints return an empty body.
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError as exc:
        raise ResponseError(
            f"Failed to parse response from {response.request.url.path}: {exc}",
            status_code=response.status_code,
        ) from exc
