"""
Pytest configuration and fixtures for mint-figures tests

Nothing here touches the network: pipelines are driven through a fake
requests session that answers from a routing function.
"""
from __future__ import annotations

import json
import logging
from datetime import date
from typing import Callable
from urllib.parse import parse_qs, urlparse

import pytest
import requests

from mint_figures.config import RunConfig
from mint_figures.http_client import HttpClient
from mint_figures.periods import date_period, year_period


def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: Unit tests that don't require the network"
    )


# =======================
# FAKE HTTP
# =======================


class FakeResponse:
    def __init__(self, body: bytes | str, *, status_code: int = 200, content_type: str = "application/json", url: str = ""):
        self.content = body.encode("utf-8") if isinstance(body, str) else body
        self.status_code = status_code
        self.headers = {"Content-Type": content_type}
        self.url = url


def json_response(data, **kwargs) -> FakeResponse:
    return FakeResponse(json.dumps(data), **kwargs)


def html_response(html: str, **kwargs) -> FakeResponse:
    kwargs.setdefault("content_type", "text/html; charset=utf-8")
    return FakeResponse(html, **kwargs)


class FakeSession:
    """Minimal stand-in for requests.Session.

    ``route(path, query)`` returns a FakeResponse; every request URL, with
    its params encoded the way requests does it, is recorded in ``calls``.
    """

    def __init__(self, route: Callable[[str, dict[str, str]], FakeResponse]):
        self.route = route
        self.headers: dict[str, str] = {}
        self.calls: list[str] = []
        self.params: list[dict | None] = []

    def get(self, url, params=None, timeout=None, headers=None):
        self.params.append(params)
        url = requests.Request("GET", url, params=params).prepare().url
        self.calls.append(url)
        parsed = urlparse(url)
        query = {k: v[0] for k, v in parse_qs(parsed.query).items()}
        response = self.route(parsed.path, query)
        response.url = url
        return response

    def paths(self) -> list[str]:
        return [urlparse(u).path for u in self.calls]


@pytest.fixture
def make_http():
    """Build an HttpClient over a FakeSession without retry sleeps."""

    def _make(route, *, max_retries=0):
        session = FakeSession(route)
        client = HttpClient(session, timeout_s=1, max_retries=max_retries, backoff_base_s=0)
        return client, session

    return _make


# =======================
# CONFIG
# =======================


@pytest.fixture
def today() -> date:
    return date(2024, 6, 20)


@pytest.fixture
def run_config(tmp_path, today) -> RunConfig:
    return RunConfig(
        out_dir=tmp_path / "lists",
        cache_dir=tmp_path / "saved-reports",
        request_delay_s=0.0,
        max_retries=0,
        today=today,
    )


# =======================
# SAMPLE DATA
# =======================


@pytest.fixture
def june_7():
    return date_period(date(2024, 6, 7), label="June")


@pytest.fixture
def june_14():
    return date_period(date(2024, 6, 14), label="June")


@pytest.fixture
def year_2020():
    return year_period(2020)


def _sales_row(name: str, quantity: str, *, item: str = "24AA", program: str = "Rolls &amp; Bags &amp; Boxes", valid: str = "06/07/2024") -> dict[str, str]:
    return {
        "Program Name": program,
        "Item": item,
        "Item Description": name,
        "Adj. Net Demand": quantity,
        "Date Sales Report is Valid": valid,
    }


def _dropdown_page(items: dict) -> str:
    payload = json.dumps(items).replace('"', "&quot;")
    return (
        "<html><body>"
        f'<div class="production-sales" data-tabletype="cumulative" data-dropdownitems="{payload}"></div>'
        "</body></html>"
    )


@pytest.fixture
def sales_row():
    return _sales_row


@pytest.fixture
def dropdown_page():
    return _dropdown_page


@pytest.fixture
def responses():
    """Response builders: ``responses.json(data)``, ``responses.html(text)``."""

    class _Responses:
        json = staticmethod(json_response)
        html = staticmethod(html_response)
        raw = FakeResponse

    return _Responses


@pytest.fixture(autouse=True)
def _reset_package_logger():
    """Drop handlers the CLI attaches so they never outlive a captured stream."""

    yield
    logger = logging.getLogger("mint_figures")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
