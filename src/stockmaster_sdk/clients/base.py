from __future__ import annotations

from dataclasses import dataclass

from ..http_client import HttpClient


@dataclass
class BaseClient:
    http: HttpClient
    script_url: str

    def _request(self, method: str, **kwargs):
        return self.http.request(method, self.script_url, **kwargs)
