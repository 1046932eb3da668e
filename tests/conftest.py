# tests/conftest.py

import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from Connection import ValorantConnection
from Logger import Logger
from tests.helpers import LOCKFILE, FakeApi


@pytest.fixture
def logger(tmp_path):
	return Logger("Downfall", str(tmp_path / "logs" / "Downfall"), ".log")


@pytest.fixture
def api():
	return FakeApi()


@pytest.fixture
def connection(api, logger):
	return ValorantConnection(logger, utils=api, credential_source=lambda: LOCKFILE)
