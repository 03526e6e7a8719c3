from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, List

import pytest
from typer.testing import CliRunner

from cli.app import app
from models.records import Sample
from services.aggregator import CarbonIntensityAggregator
from services.errors import UpstreamError

INTERVALS = [
    {"timestamp": "2024-01-01T10:00:00Z", "duration": 3600, "location": "45.0,-122.0"},
]


class StubSource:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.closed = False

    async def fetch_samples(self, latitude, longitude, start, end) -> List[Sample]:
        if self.error is not None:
            raise self.error
        return [
            Sample(datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc), 400.0),
            Sample(datetime(2024, 1, 1, 10, 30, tzinfo=timezone.utc), 600.0),
        ]

    async def aclose(self) -> None:
        self.closed = True


class StubClient:
    def __init__(self, config) -> None:
        self.config = config
        self.submitted: List[Dict[str, Any]] | None = None
        self.closed = False

    def annotate(self, intervals: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        self.submitted = intervals
        return [dict(interval, carbon_intensity=1102.31) for interval in intervals]

    def close(self) -> None:
        self.closed = True


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def intervals_file(tmp_path):
    path = tmp_path / "intervals.json"
    path.write_text(json.dumps(INTERVALS))
    return path


def _install_source(monkeypatch, source: StubSource) -> None:
    monkeypatch.setattr(
        "cli.app._build_aggregator", lambda: CarbonIntensityAggregator(source=source)
    )


def test_estimate_renders_intensity(monkeypatch, runner: CliRunner, intervals_file) -> None:
    source = StubSource()
    _install_source(monkeypatch, source)

    result = runner.invoke(app, ["estimate", str(intervals_file)])

    assert result.exit_code == 0
    assert "Carbon Intensity" in result.stdout
    assert "1102.31 g/kWh" in result.stdout
    assert source.closed is True


def test_estimate_json_output(monkeypatch, runner: CliRunner, tmp_path) -> None:
    _install_source(monkeypatch, StubSource())
    path = tmp_path / "batch.json"
    path.write_text(json.dumps({"intervals": INTERVALS}))

    result = runner.invoke(app, ["estimate", str(path), "--json"])

    assert result.exit_code == 0
    payload = json.loads(result.stdout[result.stdout.index("[\n"):])
    assert payload[0]["carbon_intensity"] == pytest.approx(500 / 0.45359237)


def test_estimate_reports_engine_errors(monkeypatch, runner: CliRunner, intervals_file) -> None:
    source = StubSource(error=UpstreamError("WattTime unavailable", 503))
    _install_source(monkeypatch, source)

    result = runner.invoke(app, ["estimate", str(intervals_file)])

    assert result.exit_code == 1
    assert "WattTime unavailable" in result.output
    assert source.closed is True


def test_estimate_rejects_invalid_file(runner: CliRunner, tmp_path) -> None:
    path = tmp_path / "broken.json"
    path.write_text("{not json")

    result = runner.invoke(app, ["estimate", str(path)])

    assert result.exit_code != 0


def test_submit_posts_to_service(monkeypatch, runner: CliRunner, intervals_file) -> None:
    clients: List[StubClient] = []

    def factory(config):
        client = StubClient(config)
        clients.append(client)
        return client

    monkeypatch.setattr("cli.app.ApiClient", factory)

    result = runner.invoke(app, ["--base-url", "http://service.test/", "submit", str(intervals_file)])

    assert result.exit_code == 0
    assert "1102.31 g/kWh" in result.stdout
    client = clients[0]
    assert client.config.base_url == "http://service.test"
    assert client.submitted[0]["location"] == "45.0,-122.0"
    assert client.closed is True
