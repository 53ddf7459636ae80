import os
import sys
from pathlib import Path

import httpx
import pytest

TESTS = Path(__file__).resolve().parent
ROOT = TESTS.parent
REPO_ROOT = Path(__file__).resolve().parents[3]
CLIENT_SRC = REPO_ROOT / "services" / "chat_client" / "src"
for path in (str(TESTS), str(ROOT / "src"), str(CLIENT_SRC), str(REPO_ROOT)):
    if path not in sys.path:
        sys.path.append(path)

os.environ.setdefault("APP_ENV", "test")
os.environ["OPENROUTER_API_KEY"] = "test-openrouter-key"
os.environ.pop("OPENROUTER_HTTP_REFERER", None)
os.environ.pop("OPENROUTER_X_TITLE", None)

from relay_api import settings as settings_module

settings_module.get_settings.cache_clear()

from relay_api.main import app, get_upstream_transport
from upstream_fakes import FakeUpstream


@pytest.fixture()
def upstream():
    fake = FakeUpstream()
    app.dependency_overrides[get_upstream_transport] = lambda: fake.transport
    try:
        yield fake
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
async def async_client():
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
