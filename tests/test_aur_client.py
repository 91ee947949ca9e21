from __future__ import annotations

from urllib.parse import parse_qs, urlparse

import pytest
import requests

from repman.aur_client import AURClient
from repman.errors import AurError


class FakeResponse:
    def __init__(self, payload, status=200):
        self.payload = payload
        self.status = status

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.exceptions.HTTPError(f"{self.status} Server Error")

    def json(self):
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload


@pytest.fixture
def fake_get(monkeypatch):
    state = {"urls": [], "response": FakeResponse({"type": "multiinfo", "results": []})}

    def get(url, params=None, timeout=None):
        state["urls"].append(requests.Request("GET", url, params=params).prepare().url)
        return state["response"]

    monkeypatch.setattr(requests, "get", get)
    return state


def test_multiple_packages_in_one_request(fake_get) -> None:
    fake_get["response"] = FakeResponse({"type": "multiinfo", "results": [
        {"Name": "yay", "PackageBase": "yay", "Version": "12.3.5-1"},
        {"Name": "libfoo", "PackageBase": "foo-split", "Version": "1:2.0-1", "OutOfDate": 1700000000},
    ]})
    found = AURClient().get_multiple_packages(["yay", "libfoo", "ghost"])

    assert fake_get["urls"] == [
        "https://aur.archlinux.org/rpc/?v=5&type=info&arg%5B%5D=yay&arg%5B%5D=libfoo&arg%5B%5D=ghost"
    ]
    assert set(found) == {"yay", "libfoo"}
    assert found["libfoo"].package_base == "foo-split"
    assert found["libfoo"].out_of_date == 1700000000


def test_empty_query_makes_no_request(fake_get) -> None:
    assert AURClient().get_multiple_packages([]) == {}
    assert fake_get["urls"] == []


def test_rpc_error(fake_get) -> None:
    fake_get["response"] = FakeResponse({"type": "error", "error": "Too many package arguments."})
    with pytest.raises(AurError, match="Too many"):
        AURClient().get_package_info("yay")


def test_http_error(fake_get) -> None:
    fake_get["response"] = FakeResponse({}, status=503)
    with pytest.raises(AurError, match="503"):
        AURClient().get_package_info("yay")


def test_invalid_json(fake_get) -> None:
    fake_get["response"] = FakeResponse(ValueError("Expecting value"))
    with pytest.raises(AurError, match="invalid JSON"):
        AURClient().get_package_info("yay")


def test_names_with_plus_are_encoded(fake_get) -> None:
    AURClient().get_multiple_packages(["libc++", "gtk+"])

    query = parse_qs(urlparse(fake_get["urls"][0]).query)
    assert query["arg[]"] == ["libc++", "gtk+"]
    assert query["v"] == ["5"]
    assert query["type"] == ["info"]
