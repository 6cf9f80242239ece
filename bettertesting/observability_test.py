"""Tests for logging configuration."""

from __future__ import annotations

import json
import logging

import pytest
import structlog

from bettertesting.observability import LOG_LEVEL_ENV, _get_log_level, configure_logging


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    structlog.reset_defaults()


def test_default_level(monkeypatch):
    monkeypatch.delenv(LOG_LEVEL_ENV, raising=False)
    assert _get_log_level(verbose=False) == logging.WARNING


def test_level_from_environment(monkeypatch):
    monkeypatch.setenv(LOG_LEVEL_ENV, "info")
    assert _get_log_level(verbose=False) == logging.INFO
    assert _get_log_level(verbose=True) == logging.DEBUG


def test_unknown_level_name(monkeypatch):
    monkeypatch.setenv(LOG_LEVEL_ENV, "chatty")
    assert _get_log_level(verbose=False) == logging.WARNING


def test_json_output_to_stderr(capsys, monkeypatch):
    monkeypatch.delenv(LOG_LEVEL_ENV, raising=False)
    configure_logging(json_output=True)
    logger = structlog.get_logger("bettertesting.test")
    logger.info("hidden_event")
    logger.warning("input_report_missing", task="integration")

    captured = capsys.readouterr()
    assert captured.out == ""
    lines = captured.err.strip().splitlines()
    assert len(lines) == 1
    event = json.loads(lines[0])
    assert event["event"] == "input_report_missing"
    assert event["task"] == "integration"
    assert event["level"] == "warning"
