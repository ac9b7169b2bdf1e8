"""
Tests for the CLI commands that do not need a live server.
"""

from __future__ import annotations

import httpx
from typer.testing import CliRunner

from alert_feed import runner

cli = CliRunner()


def test_broadcast_rejects_unknown_type():
    result = cli.invoke(runner.app, ["broadcast", "heartbeat"])
    assert result.exit_code == 1


def test_broadcast_rejects_bad_json():
    result = cli.invoke(runner.app, ["broadcast", "alert", "--data", "{nope"])
    assert result.exit_code == 1


def test_broadcast_rejects_non_object():
    result = cli.invoke(runner.app, ["broadcast", "alert", "--data", "[1, 2]"])
    assert result.exit_code == 1


def test_broadcast_posts_envelope(monkeypatch):
    sent = {}

    def fake_post(url, json):
        sent["url"] = url
        sent["json"] = json
        return httpx.Response(202, json={"delivered": 3}, request=httpx.Request("POST", url))

    monkeypatch.setattr(runner.httpx, "post", fake_post)

    result = cli.invoke(
        runner.app,
        ["broadcast", "alert_resolved", "--data", '{"id": "x"}', "--url", "http://feed:9090/"],
    )

    assert result.exit_code == 0
    assert sent == {"url": "http://feed:9090/broadcast", "json": {"type": "alert_resolved", "data": {"id": "x"}}}
    assert "Delivered to 3 client(s)." in result.output


def test_stats_unreachable_server(monkeypatch):
    def fake_get(url):
        raise httpx.ConnectError("refused")

    monkeypatch.setattr(runner.httpx, "get", fake_get)

    result = cli.invoke(runner.app, ["stats"])
    assert result.exit_code == 1
