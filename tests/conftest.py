from __future__ import annotations

import logging

import pytest

from tests.fakes import FakeFetcher, FakeINat


@pytest.fixture
def fake_inat():
    return FakeINat()


@pytest.fixture
def fake_fetcher():
    return FakeFetcher()


@pytest.fixture(autouse=True)
def _reset_birdsync_logger():
    yield
    lg = logging.getLogger("birdsync")
    for h in list(lg.handlers):
        h.close()
    lg.handlers.clear()
    lg.propagate = True
    lg.setLevel(logging.NOTSET)
