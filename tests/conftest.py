import pytest
from loguru import logger

import bing_maps.config
from bing_maps.config import Config


@pytest.fixture(autouse=True)
def setup_config(tmp_path):
    """Set up test CONFIG before each test using tmp_path."""
    config = Config(home=tmp_path / "bing-maps-data")
    bing_maps.config.CONFIG = config

    config.tiles_dir.mkdir(parents=True, exist_ok=True)
    config.logs_dir.mkdir(parents=True, exist_ok=True)

    yield config

    bing_maps.config.CONFIG = None


@pytest.fixture(autouse=True)
def disable_file_logging(monkeypatch):
    """Prevent logger.add() from creating file handlers during tests."""
    original_add = logger.add

    def mock_add(sink, **kwargs):
        # Block file path sinks to prevent log files during tests
        if hasattr(sink, "__fspath__") or isinstance(sink, (str, bytes)):
            return None
        return original_add(sink, **kwargs)

    monkeypatch.setattr(logger, "add", mock_add)
    yield


class MockClient:
    """Mock httpx.AsyncClient that returns a preset response."""

    def __init__(self, response=None, handler=None):
        self.response = response
        self.handler = handler
        self.calls: list[tuple[str, dict]] = []
        self.is_closed = False

    async def get(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.handler:
            return await self.handler(url, **kwargs)
        return self.response

    async def aclose(self):
        self.is_closed = True


@pytest.fixture
def mock_client():
    return MockClient
