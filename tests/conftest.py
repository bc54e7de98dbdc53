from __future__ import annotations

from typing import Dict, List, Optional, Union

import pytest
import requests
from requests.structures import CaseInsensitiveDict
from requests.utils import get_encoding_from_headers


def build_response(
    url: str,
    body: Union[str, bytes] = b"",
    status_code: int = 200,
    content_type: Optional[str] = None,
) -> requests.Response:
    """Build a response the way ``HTTPAdapter.build_response`` does."""
    resp = requests.Response()
    resp.url = url
    resp.status_code = status_code
    resp.reason = "OK" if status_code < 400 else "Error"
    resp.headers = CaseInsensitiveDict({"Content-Type": content_type} if content_type else {})
    resp.encoding = get_encoding_from_headers(resp.headers)
    resp._content = body.encode("utf-8") if isinstance(body, str) else body
    return resp


class FakeSession:
    """Serves canned responses; anything else raises a connection error."""

    def __init__(self, routes: Dict[str, Union[requests.Response, Exception]]) -> None:
        self.routes = routes
        self.requested: List[str] = []
        self.timeouts: List[Optional[float]] = []

    def get(self, url: str, timeout: Optional[float] = None) -> requests.Response:
        self.requested.append(url)
        self.timeouts.append(timeout)
        route = self.routes.get(url)
        if route is None:
            raise requests.ConnectionError(f"no route to {url}")
        if isinstance(route, Exception):
            raise route
        return route

    def close(self) -> None:
        pass


@pytest.fixture
def make_session():
    def factory(routes):
        prepared = {}
        for url, value in routes.items():
            if isinstance(value, (str, bytes)):
                value = build_response(url, value)
            prepared[url] = value
        return FakeSession(prepared)

    return factory
