"""Fixtures for UI tests."""

import pytest

from tickboard.ui.app import TickboardApp


@pytest.fixture
def cfg():
    return {
        "url": "http://pm.test",
        "token": None,
        "timeout": 5.0,
        "queue_size": 64,
        "reject_stale_events": True,
        "refresh_interval": 0,
        "user": None,
    }


@pytest.fixture
def make_app(cfg, gateway):
    """An app wired to the in-memory service, without live updates."""

    def _make(**kwargs):
        return TickboardApp(cfg, "p1", gateway=gateway, live=False, **kwargs)

    return _make
