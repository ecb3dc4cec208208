"""Tests for the logging level plumbing."""

from __future__ import annotations

import logging

import pytest

from devspawn.logger import set_level


@pytest.fixture
def restore_root_level():
    root = logging.getLogger()
    before = root.level
    yield root
    root.setLevel(before)


def test_set_level_applies_settings_level(monkeypatch, restore_root_level):
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    set_level("warning")
    assert restore_root_level.level == logging.WARNING


def test_env_var_wins(monkeypatch, restore_root_level):
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    restore_root_level.setLevel(logging.DEBUG)
    set_level("ERROR")
    assert restore_root_level.level == logging.DEBUG


def test_unknown_level_falls_back_to_info(monkeypatch, restore_root_level):
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    set_level("chatty")
    assert restore_root_level.level == logging.INFO
