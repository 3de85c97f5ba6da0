import pytest

from ctor.config import reset_config


@pytest.fixture(autouse=True)
def fresh_config(monkeypatch):
    """Every test starts from default config, untouched by the caller's env."""
    monkeypatch.delenv("CTOR_FIELD_COLLISIONS", raising=False)
    monkeypatch.delenv("CTOR_STRICT_EXTENSION", raising=False)
    reset_config()
    yield
    reset_config()
