import pytest

from velvet.storage import MemoryStore

ENV_VARS = (
    "GEMINI_API_KEY",
    "API_KEY_B64",
    "GEMINI_BASE_URL",
    "VELVET_TEXT_MODEL",
    "VELVET_IMAGE_MODEL",
    "VELVET_FAST_MODEL",
    "VELVET_CALL_TIMEOUT",
    "VELVET_REFINE_PASSES",
    "VELVET_REVERIFY",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Isolate every test from the developer's environment and data dir."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("DATA_DIR", str(tmp_path / "data"))


@pytest.fixture
def data_dir(tmp_path):
    path = tmp_path / "data"
    path.mkdir(exist_ok=True)
    return path


@pytest.fixture
def store(data_dir):
    return MemoryStore(data_dir)
