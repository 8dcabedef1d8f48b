"""Shared fixtures for CLI tests."""

import os
from argparse import Namespace

import pytest


@pytest.fixture
def service(gateway, monkeypatch, tmp_path):
    """Point every command at the in-memory service."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
    for name in list(os.environ):
        if name.startswith("TICKBOARD_"):
            monkeypatch.delenv(name)
    for module in ("board", "ticket", "sprint"):
        monkeypatch.setattr(f"tickboard.cli.{module}.make_gateway", lambda cfg: gateway)
    return gateway


@pytest.fixture
def make_args():
    def _make(**kwargs):
        defaults = dict(url=None, token=None, project="p1", config=None, json=False, verbose=False)
        defaults.update(kwargs)
        return Namespace(**defaults)

    return _make
