"""Synchronous HTTP transport for backend chat endpoints."""

from __future__ import annotations

from typing import Any, Dict, Optional, Protocol

import httpx

from localms.kernel.errors import BackendError, ResponseDecodeError, TransportError


class ChatTransport(Protocol):
    def post_json(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        ...


class HttpChatTransport:
    """One request per call; no retries. Errors are fatal to the session."""

    def __init__(
        self,
        host: str,
        port: int,
        *,
        timeout_sec: float = 300.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.base_url = "http://{0}:{1}".format(host, port)
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=httpx.Timeout(timeout_sec, connect=10.0))

    def post_json(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = self.base_url + path
        try:
            response = self._client.post(url, json=payload)
        except httpx.HTTPError as exc:
            raise TransportError("failed to send request to {0}: {1}".format(url, exc)) from exc

        if not response.is_success:
            raise BackendError(response.status_code, response.text)

        try:
            body = response.json()
        except ValueError as exc:
            raise ResponseDecodeError("failed to decode response from {0}: {1}".format(url, exc)) from exc
        if not isinstance(body, dict):
            raise ResponseDecodeError("response from {0} is not a JSON object".format(url))
        return body

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "HttpChatTransport":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
