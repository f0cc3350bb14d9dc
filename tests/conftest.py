# tests/conftest.py
# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

import json

import pytest
import requests

from lazy_farms.core.config import NETWORKS
from lazy_farms.services import abi as abi_module


class FakeResponse:
    def __init__(self, status: int = 200, payload=None, text: str = ""):
        self.status_code = status
        self._payload = payload
        self.text = text or (json.dumps(payload) if payload is not None else "")
        self.reason = "OK" if status < 400 else "Error"

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    @property
    def content(self) -> bytes:
        return self.text.encode()

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON body")
        return self._payload


class FakeSession:
    """Replays queued responses and records every request."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls: list[tuple[str, str, dict]] = []

    def _next(self, method: str, url: str, **kwargs):
        self.calls.append((method, url, kwargs))
        resp = self.responses.pop(0)
        if isinstance(resp, Exception):
            raise resp
        return resp

    def get(self, url, params=None, timeout=None):
        return self._next("GET", url, params=params)

    def post(self, url, json=None, timeout=None):
        return self._next("POST", url, json=json)

    def request(self, method, url, headers=None, timeout=None, **kwargs):
        return self._next(method, url, headers=headers, **kwargs)


@pytest.fixture
def testnet():
    return NETWORKS["testnet"]


@pytest.fixture
def connection_error():
    return requests.ConnectionError("connection refused")


@pytest.fixture(autouse=True)
def _clear_artifact_cache():
    abi_module.clear_cache()
    yield
    abi_module.clear_cache()
