"""Shared fixtures: settings and an in-memory stand-in for the ADT client."""

import pytest

from abap_adt_mcp.adt import AdtResponse
from abap_adt_mcp.config import AdtSettings


class FakeAdt:
    """Records requests and answers them from a url -> data mapping."""

    def __init__(self, responses=None, error=None):
        self.responses = responses or {}
        self.error = error
        self.calls = []

    def fetch(self, url, params=None, method="GET", body=None, headers=None, parse=True):
        self.calls.append(
            {"url": url, "params": params, "method": method, "body": body, "headers": headers, "parse": parse}
        )
        if self.error is not None:
            raise self.error
        return AdtResponse(status=200, data=self.responses.get(url, ""))


@pytest.fixture
def settings():
    return AdtSettings(
        sap_url="https://sap.example.com:44300/",
        sap_user="dev",
        sap_password="secret",
        sap_client="100",
        sap_language="EN",
    )


@pytest.fixture
def fake_adt():
    return FakeAdt()
