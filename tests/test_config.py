"""Tests for environment-driven settings."""

import pytest

from src.launchpad.config import Settings, load_settings
from src.launchpad.errors import ConfigurationError


def test_defaults():
    settings = load_settings(environ={})
    assert settings == Settings()
    assert settings.projects_collection == "projects"
    assert settings.banner_seconds == 3.0
    assert settings.mail_test_mode is False


def test_reads_environment():
    settings = load_settings(
        environ={
            "LAUNCHPAD_PROJECTS_COLLECTION": "launches",
            "LAUNCHPAD_MAIL_TIMEOUT": "2.5",
            "LAUNCHPAD_MAIL_TEST_MODE": "yes",
            "LAUNCHPAD_SERIALIZE_MOVES": "1",
            "LAUNCHPAD_LOG_LEVEL": " DEBUG ",
        }
    )
    assert settings.projects_collection == "launches"
    assert settings.mail_timeout == 2.5
    assert settings.mail_test_mode is True
    assert settings.serialize_moves is True
    assert settings.log_level == "DEBUG"


def test_overrides_win_over_environment():
    settings = load_settings(environ={"LAUNCHPAD_BANNER_SECONDS": "5"}, banner_seconds=1.0)
    assert settings.banner_seconds == 1.0


@pytest.mark.parametrize(
    "environ",
    [
        {"LAUNCHPAD_MAIL_TEST_MODE": "maybe"},
        {"LAUNCHPAD_MAIL_TIMEOUT": "soon"},
        {"LAUNCHPAD_BANNER_SECONDS": "0"},
        {"LAUNCHPAD_PROJECTS_COLLECTION": ""},
    ],
)
def test_invalid_values(environ):
    with pytest.raises(ConfigurationError):
        load_settings(environ=environ)


def test_unknown_override():
    with pytest.raises(ConfigurationError) as excinfo:
        load_settings(environ={}, colour="blue")
    assert excinfo.value.details["keys"] == "colour"
