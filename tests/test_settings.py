import runpy
import sys

import pytest
from django.core.exceptions import ImproperlyConfigured

import canvass_app.settings

SETTINGS_PATH = canvass_app.settings.__file__


def load_settings(monkeypatch, **env):
    monkeypatch.delenv("SECRET_KEY", raising=False)
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    # a loaded pytest counts as a test run, so hide it to read settings as a deployment would
    monkeypatch.delitem(sys.modules, "pytest", raising=False)
    return runpy.run_path(SETTINGS_PATH)


def test_secret_key_is_required_when_debug_is_off(monkeypatch):
    with pytest.raises(ImproperlyConfigured):
        load_settings(monkeypatch, DEBUG="False")


def test_secret_key_comes_from_the_environment(monkeypatch):
    loaded = load_settings(monkeypatch, DEBUG="False", SECRET_KEY="not-a-real-secret")
    assert loaded["SECRET_KEY"] == "not-a-real-secret"


def test_debug_uses_the_same_key_in_every_process(monkeypatch):
    first = load_settings(monkeypatch, DEBUG="True")
    second = load_settings(monkeypatch, DEBUG="True")
    assert first["SECRET_KEY"] == second["SECRET_KEY"] == "canvass-insecure-development-key"
