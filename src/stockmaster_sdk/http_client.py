from __future__ import annotations

import json
import time
from dataclasses import dataclass
from typing import Any, Callable

import requests
from requests.adapters import HTTPAdapter

from .config import ClientConfig
from .error_mapper import map_error
from .exceptions import TransportError

ResponseHook = Callable[[requests.Response], None]
RequestHook = Callable[[str, str, dict[str, Any]], None]


@dataclass
class LastOperation:
    operation: str
    duration_ms: int
    result: str


@dataclass
class HttpClient:
    """Single-attempt JSON client for the spreadsheet script endpoint.

    The sync policy forbids automatic retries, so every call is one attempt and
    the next scheduled trigger is the only retry.
    """

    config: ClientConfig
    session: requests.Session | None = None
    before_request: RequestHook | None = None
    after_response: ResponseHook | None = None
    last_operation: LastOperation | None = None

    def __post_init__(self) -> None:
        if self.session is None:
            self.session = requests.Session()
            adapter = HTTPAdapter(pool_connections=2, pool_maxsize=2, max_retries=0)
            self.session.mount("http://", adapter)
            self.session.mount("https://", adapter)

    def request(
        self,
        method: str,
        url: str,
        *,
        json_body: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        parse_response: bool = True,
        operation: str = "unknown",
    ) -> Any:
        """Send one request.

        With ``parse_response=False`` the call is fire-and-forget: any response,
        whatever its status, counts as delivered and ``None`` is returned.
        Malformed JSON on a parsed call also yields ``None``.
        """
        if self.session is None:
            raise RuntimeError("HTTP session not initialized")
        headers = {"Accept": "application/json"}
        normalized_method = method.upper()
        request_context = {"headers": headers, "json_body": json_body, "params": params}
        if self.before_request:
            self.before_request(normalized_method, url, request_context)

        started = time.monotonic()
        try:
            response = self.session.request(
                method=normalized_method,
                url=url,
                headers=headers,
                json=json_body,
                params=params,
                timeout=(self.config.connect_timeout_seconds, self.config.read_timeout_seconds),
                verify=self.config.verify_ssl,
            )
        except requests.RequestException as exc:
            self._record_operation(operation, started, "transport_error")
            raise TransportError(
                code="TRANSPORT_ERROR",
                message=str(exc),
                details={"type": type(exc).__name__},
                status_code=0,
                raw_payload=None,
            ) from exc

        if self.after_response:
            self.after_response(response)
        if not parse_response:
            self._record_operation(operation, started, "dispatched")
            return None
        if response.ok:
            self._record_operation(operation, started, "success")
            if not response.content:
                return None
            try:
                return response.json()
            except ValueError:
                return None

        payload: Any
        try:
            payload = response.json()
        except ValueError:
            payload = {"message": response.text}
        self._record_operation(operation, started, "error")
        raise map_error(response.status_code, payload if isinstance(payload, dict) else {"message": json.dumps(payload)})

    def _record_operation(self, operation: str, started: float, result: str) -> None:
        self.last_operation = LastOperation(
            operation=operation,
            duration_ms=int((time.monotonic() - started) * 1000),
            result=result,
        )
