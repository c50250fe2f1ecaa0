# tests/test_logger.py

import logging

import pytest

from boxbuilder.utils import parse_module_levels
from boxbuilder.utils.logger import _apply_module_levels, _normalize_module_name


@pytest.mark.parametrize(
    "name, expected",
    [
        ("commit", "boxbuilder.builder.commit"),
        ("cc", "boxbuilder.cache"),
        ("builder.*", "boxbuilder.builder"),
        ("runtime.engine", "boxbuilder.runtime.engine"),
        ("boxbuilder.io", "boxbuilder.io"),
        ("docker", "docker"),
    ],
)
def test_normalize_module_name(name, expected):
    assert _normalize_module_name(name) == expected


def test_parse_module_levels():
    assert parse_module_levels(" cache=debug, bogus ,commit=INFO,") == {
        "cache": "DEBUG",
        "commit": "INFO",
    }
    assert parse_module_levels(None) == {}


def test_levels_from_environment(monkeypatch):
    monkeypatch.setenv("BOXB_LOG_LEVELS", "hash=WARNING")
    target = logging.getLogger("boxbuilder.cache.hasher")
    previous = target.level
    try:
        _apply_module_levels(None)
        assert target.level == logging.WARNING
    finally:
        target.setLevel(previous)


def test_unknown_level_is_ignored():
    target = logging.getLogger("boxbuilder.registry")
    previous = target.level
    _apply_module_levels({"rty": "LOUD"})
    assert target.level == previous
