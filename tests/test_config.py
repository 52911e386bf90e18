# tests/test_config.py
import pytest

from pingcore.config import MIN_SIZE, UNBOUNDED, Settings
from pingcore.errors import ConfigurationError, ResolutionError
from pingcore.resolver import resolve


def test_defaults():
    s = Settings()
    assert s.count == UNBOUNDED
    assert not s.bounded
    assert s.interval == 1.0
    assert s.timeout == 100.0
    assert s.size >= MIN_SIZE


@pytest.mark.parametrize("kwargs", [
    {"size": MIN_SIZE - 1},
    {"interval": 0},
    {"timeout": -1},
    {"count": 0},
    {"count": -2},
])
def test_invalid_settings_rejected(kwargs):
    with pytest.raises(ConfigurationError):
        Settings(**kwargs)


def test_minimum_size_accepted():
    assert Settings(size=MIN_SIZE).size == 16


def test_resolve_literals():
    assert resolve("127.0.0.1") == ("127.0.0.1", True)
    ip, ipv4 = resolve("::1")
    assert ip == "::1"
    assert ipv4 is False


def test_resolve_empty_address():
    with pytest.raises(ResolutionError):
        resolve("")
