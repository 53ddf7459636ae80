import os
import sys
from pathlib import Path

import pytest

TESTS = Path(__file__).resolve().parent
REPO_ROOT = Path(__file__).resolve().parents[3]
for path in (str(TESTS), str(TESTS.parent / "src"), str(REPO_ROOT)):
    if path not in sys.path:
        sys.path.append(path)

os.environ["CHAT_RELAY_URL"] = "http://relay.test/"
os.environ.pop("RELAY_TIMEOUT_SECONDS", None)

from chat_client import settings as settings_module

settings_module.get_client_settings.cache_clear()

from chat_client.settings import get_client_settings
from relay_fakes import FakeRelay


@pytest.fixture()
def client_settings():
    return get_client_settings()


@pytest.fixture()
def relay():
    return FakeRelay()
