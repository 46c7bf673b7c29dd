"""Tests for the instincts command line."""

import json

import pytest

from instincts.cli import main


@pytest.fixture
def cli_store(settings_env, tmp_path):
    path = tmp_path / "cli" / "instincts.json"
    settings_env.setenv("INSTINCTS_STORE_PATH", str(path))
    return path


def test_observe_creates_then_reinforces(cli_store, capsys):
    assert main(["observe", "koin-module", "--context", "di", "--description", "Koin module"]) == 0
    assert main(["observe", "koin-module"]) == 0

    out = capsys.readouterr().out
    assert "Recorded koin-module: confidence=0.30 uses=1" in out
    assert "Recorded koin-module: confidence=0.40 uses=2" in out
    payload = json.loads(cli_store.read_text(encoding="utf-8"))
    assert payload["instincts"][0]["context"] == "di"


def test_store_option_overrides_settings(cli_store, tmp_path):
    other = tmp_path / "other.json"

    assert main(["--store", str(other), "observe", "p1"]) == 0

    assert other.exists()
    assert not cli_store.exists()


def test_list_and_high(cli_store, capsys):
    main(["observe", "a", "--context", "compose", "--confidence", "0.8"])
    main(["observe", "b", "--context", "koin"])
    capsys.readouterr()

    assert main(["list", "--context", "compose"]) == 0
    listed = capsys.readouterr().out
    assert "- a [compose] confidence=0.80 uses=1" in listed
    assert "- b" not in listed
    assert "1 instinct(s)." in listed

    assert main(["high"]) == 0
    high = capsys.readouterr().out
    assert "- a [compose]" in high
    assert "- b" not in high


def test_export_then_import(cli_store, tmp_path, capsys):
    main(["observe", "p1", "--confidence", "0.9"])
    destination = tmp_path / "shared.json"

    assert main(["export", str(destination)]) == 0
    assert "Exported 1 instinct(s)" in capsys.readouterr().out

    target = tmp_path / "target.json"
    assert main(["--store", str(target), "import", str(destination)]) == 0
    assert "Store now contains 1 instinct(s)." in capsys.readouterr().out
    assert json.loads(target.read_text(encoding="utf-8"))["instincts"][0]["id"] == "p1"


def test_import_invalid_source_fails(cli_store, tmp_path, capsys):
    source = tmp_path / "bad.json"
    source.write_text('{"version": "1.0"}', encoding="utf-8")

    assert main(["import", str(source)]) == 1

    assert "Invalid instincts file" in capsys.readouterr().err
    assert not cli_store.exists()


def test_decay_reports_changed_records(cli_store, capsys):
    cli_store.parent.mkdir(parents=True)
    cli_store.write_text(
        json.dumps(
            {
                "instincts": [
                    {"id": "old", "confidence": 0.5, "lastUsed": "2020-01-01T00:00:00Z"},
                    {"id": "new", "confidence": 0.5, "lastUsed": "2999-01-01T00:00:00Z"},
                ]
            }
        ),
        encoding="utf-8",
    )

    assert main(["decay", "--days", "30"]) == 0

    out = capsys.readouterr().out
    assert "Decayed 1 of 2 instinct(s)." in out
    assert "* old" in out
    confidences = {
        i["id"]: i["confidence"]
        for i in json.loads(cli_store.read_text(encoding="utf-8"))["instincts"]
    }
    assert confidences["old"] == pytest.approx(0.45)
    assert confidences["new"] == pytest.approx(0.5)


def test_strict_mode_reports_corrupt_store(cli_store, settings_env, capsys):
    settings_env.setenv("INSTINCTS_STRICT_LOAD", "1")
    cli_store.parent.mkdir(parents=True)
    cli_store.write_text("{oops", encoding="utf-8")

    assert main(["list"]) == 1

    assert "Corrupt instinct store" in capsys.readouterr().err


def test_command_is_required(cli_store):
    with pytest.raises(SystemExit):
        main([])


@pytest.mark.parametrize(
    ("name", "value"),
    [("INSTINCTS_LOG_LEVEL", "loud"), ("INSTINCTS_DECAY_DAYS", "-1")],
)
def test_invalid_settings_fail_cleanly(cli_store, settings_env, capsys, name, value):
    settings_env.setenv(name, value)

    assert main(["list"]) == 1

    assert "invalid INSTINCTS_* settings" in capsys.readouterr().err


def test_unreadable_store_is_treated_as_empty(cli_store, capsys):
    cli_store.mkdir(parents=True)

    assert main(["list"]) == 0

    assert "0 instinct(s)." in capsys.readouterr().out
