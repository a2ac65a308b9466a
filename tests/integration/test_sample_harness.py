"""Runs the sample match harness against a temporary SQLite file."""

import logging

import pytest

from scripts.run_sample_match import main as run_sample_match

pytestmark = pytest.mark.integration


@pytest.fixture
def rules_only_env(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def test_harness_seeds_and_matches(tmp_path, request, capsys, rules_only_env):
    rootpath = request.config.rootpath
    database = tmp_path / "sample.db"

    exit_code = run_sample_match(
        [
            "--config",
            str(rootpath / "config.example.yaml"),
            "--fixtures",
            str(rootpath / "tests" / "fixtures" / "sample_pool.yaml"),
            "--database",
            str(database),
        ]
    )

    output = capsys.readouterr().out
    assert exit_code == 0
    assert database.exists()
    assert "AI scoring disabled (rules only)" in output
    assert "Matching Batch Summary" in output
    assert "Persisted Matches" in output


def test_harness_missing_fixtures(tmp_path, capsys, rules_only_env):
    exit_code = run_sample_match(
        ["--fixtures", str(tmp_path / "missing.yaml"), "--database", str(tmp_path / "x.db")]
    )

    assert exit_code == 1
    assert "Fixture file not found" in capsys.readouterr().out
