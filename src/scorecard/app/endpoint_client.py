from __future__ import annotations

import json
from dataclasses import dataclass
from http.client import HTTPException
from time import perf_counter
from typing import Any, Mapping, Protocol
from urllib.error import HTTPError, URLError
from urllib.parse import urlsplit
from urllib.request import Request, urlopen

from scorecard.app.debug_log import debug_event


DEFAULT_ENDPOINT_URL = "https://httpbin.org/post"
DEFAULT_TIMEOUT_SECONDS = 8.0
_MIN_TIMEOUT_SECONDS = 1.0
_USER_AGENT = "scorecard-sync"


class EndpointTransportError(RuntimeError):
    """Raised when the request never produced an HTTP status."""


def is_http_url(value: str) -> bool:
    parts = urlsplit(str(value or "").strip())
    return parts.scheme in {"http", "https"} and bool(parts.netloc)


@dataclass(frozen=True, slots=True)
class EndpointResponse:
    status_code: int
    body: str = ""

    @property
    def accepted(self) -> bool:
        return self.status_code == 200


@dataclass(frozen=True, slots=True)
class EndpointConfig:
    url: str = DEFAULT_ENDPOINT_URL
    api_key: str = ""
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS

    @property
    def configured(self) -> bool:
        return bool(self.url)

    @classmethod
    def from_mapping(cls, value: Mapping[str, Any] | None) -> EndpointConfig:
        raw = value or {}
        url = str(raw.get("url", "") or "").strip()
        if not is_http_url(url):
            url = ""
        api_key = str(raw.get("api_key", "") or "").strip()
        timeout_raw = raw.get("timeout_seconds", DEFAULT_TIMEOUT_SECONDS)
        try:
            timeout_seconds = float(timeout_raw)
        except (TypeError, ValueError):
            timeout_seconds = DEFAULT_TIMEOUT_SECONDS
        return cls(
            url=url,
            api_key=api_key,
            timeout_seconds=max(_MIN_TIMEOUT_SECONDS, timeout_seconds),
        )


class SubmissionEndpoint(Protocol):
    def post(self, payload: Mapping[str, Any]) -> EndpointResponse:
        raise NotImplementedError


class RemoteEndpointClient:
    def __init__(self, config: EndpointConfig | None = None) -> None:
        self._config = config or EndpointConfig()

    @property
    def config(self) -> EndpointConfig:
        return self._config

    def post(self, payload: Mapping[str, Any]) -> EndpointResponse:
        config = self._config
        if not config.configured:
            raise EndpointTransportError("Submission endpoint URL is not configured.")

        request_data = json.dumps(dict(payload), ensure_ascii=False).encode("utf-8")
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": _USER_AGENT,
        }
        if config.api_key:
            headers["Authorization"] = f"Bearer {config.api_key}"
        debug_event(
            "endpoint.request",
            url=config.url,
            submission_id=payload.get("submissionId"),
            payload_bytes=len(request_data),
        )

        started_at = perf_counter()
        try:
            request = Request(config.url, data=request_data, headers=headers, method="POST")
            with urlopen(request, timeout=config.timeout_seconds) as response:
                status_code = int(response.getcode() or 0)
                body = response.read()
        except HTTPError as exc:
            body_text = ""
            try:
                body_text = exc.read().decode("utf-8", errors="replace").strip()
            except OSError:
                body_text = ""
            debug_event(
                "endpoint.response",
                url=config.url,
                status=int(exc.code),
                reason=str(exc.reason),
                duration_ms=round((perf_counter() - started_at) * 1000.0, 2),
            )
            return EndpointResponse(status_code=int(exc.code), body=body_text)
        except (URLError, OSError, HTTPException, ValueError) as exc:
            debug_event("endpoint.request.error", url=config.url, error=str(exc))
            raise EndpointTransportError(f"Submission request to {config.url} failed: {exc}") from exc

        debug_event(
            "endpoint.response",
            url=config.url,
            status=status_code,
            body_bytes=len(body),
            duration_ms=round((perf_counter() - started_at) * 1000.0, 2),
        )
        return EndpointResponse(
            status_code=status_code,
            body=body.decode("utf-8", errors="replace"),
        )
