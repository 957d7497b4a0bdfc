import pytest

from dexsentry import cli
from dexsentry.cli import build_parser, main

from conftest import write_result


def _exit_code(argv) -> int:
    with pytest.raises(SystemExit) as exc:
        main(argv)
    return exc.value.code


def test_report_without_results_exits_1(tmp_path, capsys):
    assert _exit_code(["--results-dir", str(tmp_path), "report"]) == 1
    assert "no result files" in capsys.readouterr().out


def test_report_writes_output_file(tmp_path):
    write_result(tmp_path / "results", "2025-01-01T00-00-00-000Z", [{"name": "Rate Limiting", "passed": True}])
    out = tmp_path / "report.md"

    code = _exit_code([
        "--results-dir", str(tmp_path / "results"),
        "report", "--format", "markdown", "--output", str(out),
    ])

    assert code == 0
    assert "# DEX Security Assessment Report" in out.read_text(encoding="utf-8")


def test_phases_lists_registry(capsys):
    assert _exit_code(["phases"]) == 0
    assert "Rate Limiting" in capsys.readouterr().out


def test_unknown_phase_is_a_clean_error(tmp_path, capsys):
    assert _exit_code(["--results-dir", str(tmp_path), "run", "--phase", "9"]) == 1
    assert "unknown phase" in capsys.readouterr().out


def test_prune(tmp_path, capsys):
    for day in (1, 2, 3):
        write_result(tmp_path, f"2025-01-0{day}T00-00-00-000Z", [])

    assert _exit_code(["--results-dir", str(tmp_path), "prune", "--keep", "1"]) == 0
    assert len(list(tmp_path.glob("security-*.json"))) == 1
    assert "Removed 2" in capsys.readouterr().out


def test_no_command_prints_help(capsys):
    assert _exit_code([]) == 0
    assert "usage" in capsys.readouterr().out


def test_run_flags():
    args = build_parser().parse_args(["run", "-p", "1", "-p", "4a", "--policy", "unknown", "-c", "5"])
    assert args.phase == ["1", "4a"]
    assert args.policy == "UNKNOWN"
    assert args.concurrency == 5


def test_run_phase_and_all_are_exclusive():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["run", "--phase", "1", "--all"])


def test_bad_transport_policy_from_env_is_a_clean_error(tmp_path, monkeypatch, capsys):
    monkeypatch.setattr(cli, "TRANSPORT_ERROR_POLICY", "MAYBE")

    assert _exit_code(["--results-dir", str(tmp_path), "run", "--phase", "1"]) == 1
    out = capsys.readouterr().out
    assert out.startswith("[error] DEXSENTRY_TRANSPORT_ERROR_POLICY='MAYBE'")
    assert list(tmp_path.iterdir()) == []


def test_bad_dedup_policy_from_env_is_a_clean_error(tmp_path, monkeypatch, capsys):
    write_result(tmp_path, "2025-01-01T00-00-00-000Z", [{"name": "Rate Limiting", "passed": True}])
    monkeypatch.setattr(cli, "DEDUP_POLICY", "newest")

    assert _exit_code(["--results-dir", str(tmp_path), "report", "-f", "console"]) == 1
    assert "[error] DEXSENTRY_DEDUP_POLICY='newest'" in capsys.readouterr().out


def test_named_suites_are_not_in_all():
    from dexsentry.phases import ALL_PHASES

    assert "10" in ALL_PHASES
    assert "mev" not in ALL_PHASES
    assert "critical" not in ALL_PHASES
