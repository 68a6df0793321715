import pytest

from imgsync.domain.image.model.registry import Registry


@pytest.fixture
def registry_a() -> Registry:
    return Registry(name="a", url="registry-a.example.com")


@pytest.fixture
def registry_b() -> Registry:
    return Registry(name="b", url="registry-b.example.com/mirror")


@pytest.fixture
def registries(registry_a: Registry, registry_b: Registry) -> list[Registry]:
    return [registry_a, registry_b]


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep a developer's imgsync/docker settings out of the tests."""
    for name in ("IMGSYNC_CONFIG_FILE", "IMGSYNC_LOG_FILE", "IMGSYNC_LOG_LEVEL"):
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
