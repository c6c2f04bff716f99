"""Shared test doubles."""

import io

import requests
from requests.structures import CaseInsensitiveDict
from urllib3.response import HTTPResponse


def fake_response(status: int = 200, body: bytes = b"", headers=None) -> requests.Response:
    """A real requests.Response streaming from an in-memory urllib3 body."""
    resp = requests.Response()
    resp.status_code = status
    resp.headers = CaseInsensitiveDict(headers or {})
    resp.raw = HTTPResponse(body=io.BytesIO(body), status=status, preload_content=False)
    resp.encoding = "utf-8"
    return resp
