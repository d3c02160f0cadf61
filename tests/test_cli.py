from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

import pytest
from typer.testing import CliRunner

from cli.app import app


class StubClient:
    def __init__(self, config) -> None:
        self.config = config
        self.readings_calls: List[Optional[int]] = []
        self.legacy_calls: List[Optional[int]] = []
        self.readings_payload: Dict[str, Any] = {
            "readings": [
                {
                    "id": "r2",
                    "timestamp": "2024-03-15T10:45:00Z",
                    "temperature": 26.2,
                    "humidity": 58.5,
                    "co2": 480.0,
                    "pm2_5": 15.3,
                    "pm10": 30.7,
                    "latitude": 24.8607,
                    "longitude": 67.0011,
                },
            ],
            "loading": False,
            "error": None,
            "status": "streaming",
            "rejected_count": 1,
        }
        self.closed = False

    def get_readings(self, limit: Optional[int] = None) -> Dict[str, Any]:
        self.readings_calls.append(limit)
        return self.readings_payload

    def get_current(self) -> Dict[str, Any]:
        reading = dict(self.readings_payload["readings"][0])
        reading["id"] = "current"
        return reading

    def get_legacy(self, results: Optional[int] = None) -> Dict[str, Any]:
        self.legacy_calls.append(results)
        return {
            "readings": [],
            "rejected": [
                {
                    "record_id": "8",
                    "shape": "polling",
                    "problems": [{"field": "co2", "raw_value": "x", "reason": "not numeric"}],
                }
            ],
        }

    def close(self) -> None:
        self.closed = True


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


def _install_stub(monkeypatch) -> StubClient:
    stub = StubClient(config=None)

    def factory(config):
        stub.config = config
        return stub

    monkeypatch.setattr("cli.app.ApiClient", factory)
    return stub


def test_readings_command(monkeypatch, runner: CliRunner) -> None:
    stub = _install_stub(monkeypatch)

    result = runner.invoke(app, ["--base-url", "http://svc:9000/", "readings", "--limit", "24"])

    assert result.exit_code == 0
    assert "status: streaming" in result.stdout
    assert "rejected_count: 1" in result.stdout
    assert "r2" in result.stdout
    assert "24.8607,67.0011" in result.stdout
    assert stub.readings_calls == [24]
    assert stub.config.base_url == "http://svc:9000"
    assert stub.closed is True


def test_current_command(monkeypatch, runner: CliRunner) -> None:
    _install_stub(monkeypatch)

    result = runner.invoke(app, ["current"])

    assert result.exit_code == 0
    assert "Current Reading" in result.stdout
    assert "id: current" in result.stdout


def test_legacy_command_lists_rejections(monkeypatch, runner: CliRunner) -> None:
    stub = _install_stub(monkeypatch)

    result = runner.invoke(app, ["legacy", "--results", "5"])

    assert result.exit_code == 0
    assert "No readings available." in result.stdout
    assert "co2: not numeric" in result.stdout
    assert stub.legacy_calls == [5]


def test_normalize_command_reports_every_record(monkeypatch, runner: CliRunner, tmp_path) -> None:
    _install_stub(monkeypatch)
    path = tmp_path / "records.json"
    path.write_text(
        json.dumps(
            {
                "readings2024-03-15_10-30-00": {
                    "temp": 26.2,
                    "humidity": 58.5,
                    "co2": 480,
                    "pm25": 15.3,
                    "pm10": 30.7,
                    "location": {"lat": 0, "lng": 0},
                    "timestamp": "2024-03-15 10-30-00",
                },
                "broken": {"temp": 1.0, "timestamp": "2024-03-15 10:31:00"},
            }
        )
    )

    result = runner.invoke(app, ["normalize", str(path)])

    assert result.exit_code == 1
    assert "Accepted 1 of 2 records" in result.stdout
    assert "readings2024-03-15_10-30-00" in result.stdout
    assert "loc=-" in result.stdout
    assert "broken (flat)" in result.stdout
    assert "co2: missing" in result.stdout


def test_normalize_command_clean_file(monkeypatch, runner: CliRunner, tmp_path) -> None:
    _install_stub(monkeypatch)
    path = tmp_path / "records.json"
    path.write_text(
        json.dumps(
            [
                {
                    "entry_id": 1,
                    "created_at": "2024-03-15T10:30:00Z",
                    "field1": "20",
                    "field2": "50",
                    "field3": "400",
                    "field4": "10",
                    "field5": "20",
                }
            ]
        )
    )

    result = runner.invoke(app, ["normalize", str(path), "--shape", "polling"])

    assert result.exit_code == 0
    assert "Accepted 1 of 1 records" in result.stdout
    assert "No records rejected." in result.stdout
