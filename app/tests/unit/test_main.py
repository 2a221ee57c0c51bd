"""Unit tests for the application entry point."""

import importlib
import sys
from unittest.mock import patch

import pytest

import infrastructure


def _is_reloaded(name):
    return name == "main" or name.startswith("infrastructure.configuration")


@pytest.fixture
def fresh_modules():
    """Drop main and the configuration package so the next import rebuilds them."""
    saved = {name: module for name, module in sys.modules.items() if _is_reloaded(name)}
    saved_package = getattr(infrastructure, "configuration", None)
    for name in saved:
        del sys.modules[name]
    yield
    for name in [name for name in sys.modules if _is_reloaded(name)]:
        del sys.modules[name]
    sys.modules.update(saved)
    if saved_package is not None:
        infrastructure.configuration = saved_package


@pytest.mark.unit
class TestMainImport:
    """Tests for module import order in main."""

    @pytest.mark.usefixtures("fresh_modules")
    def test_dotenv_is_loaded_before_settings_are_built(self):
        settings_loaded = []

        def record_load_dotenv(*args, **kwargs):
            settings_loaded.append("infrastructure.configuration.settings" in sys.modules)
            return True

        with patch("dotenv.load_dotenv", side_effect=record_load_dotenv):
            importlib.import_module("main")

        assert settings_loaded == [False]
