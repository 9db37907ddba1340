"""Shared fixtures for cloudfn tests."""

import base64
import json

import pytest

from cloudfn.options import reset_global_options


@pytest.fixture(autouse=True)
def clean_global_options():
    """Every test starts and ends without global options."""
    reset_global_options()
    yield
    reset_global_options()


@pytest.fixture
def project(monkeypatch):
    """Set the deploying project."""
    monkeypatch.setenv("GCLOUD_PROJECT", "proj-1")
    return "proj-1"


@pytest.fixture
def no_project(monkeypatch):
    monkeypatch.delenv("GCLOUD_PROJECT", raising=False)


@pytest.fixture
def encode_payload():
    """Encode a value the way Pub/Sub delivers message data."""
    return lambda value: base64.b64encode(json.dumps(value).encode("utf-8")).decode("ascii")
