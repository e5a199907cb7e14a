"""Smoke tests for the CLI entry point."""
from __future__ import annotations

import json

import pytest

from conftest import FakeProvider, make_candidates
from lead_acquisition import __main__, cli, runtime
from lead_acquisition.cli import build_parser, main


@pytest.fixture
def config_path(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps(
            {
                "provider": {"api_key": "test-key", "callback_url": "http://localhost:9/cb"},
                "pipeline": {"random_seed": 1, "reveal_workers": 2},
                "verifiers": [
                    {
                        "name": "Static",
                        "class": "lead_acquisition.verification.sample.StaticVerifier",
                        "enabled": True,
                    }
                ],
            }
        ),
        encoding="utf-8",
    )
    return path


@pytest.fixture
def fake_provider(monkeypatch):
    provider = FakeProvider(make_candidates(0, 10))
    monkeypatch.setattr(runtime, "ProviderClient", lambda settings: provider)
    return provider


def test_cli_search_writes_pending_results(config_path, fake_provider, tmp_path) -> None:
    output_path = tmp_path / "results.csv"

    exit_code = main(
        [
            "search",
            "--config",
            str(config_path),
            "--title",
            "Engineer",
            "--region",
            "Oregon",
            "--count",
            "3",
            "--output",
            str(output_path),
        ]
    )

    assert exit_code == 0
    contents = output_path.read_text(encoding="utf-8")
    assert contents.count("pending") == 3
    assert len(fake_provider.reveals) == 3
    assert all(url == "http://localhost:9/cb" for _, url in fake_provider.reveals)


def test_cli_search_prints_results_without_output(config_path, fake_provider, capsys) -> None:
    exit_code = main(["search", "--config", str(config_path), "--title", "Engineer", "--count", "2"])

    captured = capsys.readouterr()
    assert exit_code == 0
    assert captured.out.count("pending") == 2


def test_cli_batch_runs_every_request(config_path, fake_provider, tmp_path) -> None:
    input_path = tmp_path / "requests.csv"
    input_path.write_text("title,region,count\nEngineer,Oregon,2\nEngineer,Texas,1\n", encoding="utf-8")
    output_path = tmp_path / "results.xlsx"

    exit_code = main(["batch", "--config", str(config_path), str(input_path), "--output", str(output_path)])

    assert exit_code == 0
    assert output_path.exists()
    assert len(fake_provider.reveals) >= 2


def test_cli_reports_provider_outage(config_path, fake_provider) -> None:
    fake_provider.fail_search = True

    exit_code = main(["search", "--config", str(config_path), "--title", "Engineer", "--count", "2"])

    assert exit_code == 1


def test_cli_reports_bad_configuration(tmp_path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text(json.dumps({"pipeline": {"coverage_threshold": 200}}), encoding="utf-8")

    assert main(["search", "--config", str(config_path), "--count", "1"]) == 1


def test_parser_knows_every_command() -> None:
    parser = build_parser()

    assert parser.parse_args(["serve", "--config", "c.yaml", "--port", "9000"]).port == 9000
    assert parser.parse_args(["batch", "--config", "c.yaml", "in.csv"]).input == "in.csv"


def test_module_entry_point_delegates_to_cli(config_path, fake_provider, tmp_path) -> None:
    output_path = tmp_path / "results.csv"

    exit_code = __main__.main(
        ["search", "--config", str(config_path), "--title", "Engineer", "--count", "1", "--output", str(output_path)]
    )

    assert exit_code == 0
    assert output_path.exists()


def test_module_entry_point_without_arguments_shows_help(capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = __main__.main([])

    captured = capsys.readouterr()
    assert "python -m lead_acquisition" in captured.out
    assert exit_code == 2


def test_serve_mounts_task_routes_next_to_callback(config_path, fake_provider, monkeypatch) -> None:
    served = {}
    monkeypatch.setattr(cli.uvicorn, "run", lambda app, host, port: served.update(app=app, port=port))

    assert main(["serve", "--config", str(config_path), "--port", "9001"]) == 0

    paths = {route.path for route in served["app"].routes}
    assert {"/tasks", "/tasks/{task_id}", "/provider/reveal-callback"} <= paths
    assert served["port"] == 9001
