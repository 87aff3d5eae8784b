from __future__ import annotations

import logging
import signal
import subprocess
import sys
import time
import os
from pathlib import Path

import allure
import pytest
from click.testing import CliRunner

from threadme import __version__
from threadme.main import threadme

pytestmark = [
    allure.epic("Job Runner"),
    allure.feature("CLI"),
]

posix_only = pytest.mark.skipif(os.name != "posix", reason="needs /bin/sh")


def test_version():
    assert __version__


def test_version_option():
    runner = CliRunner()
    result = runner.invoke(threadme, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


@posix_only
def test_count_run_prints_banner_and_summary(caplog) -> None:
    runner = CliRunner()

    with caplog.at_level(logging.INFO, logger="threadme"):
        result = runner.invoke(
            threadme,
            ["--cmd", 'echo "{{N}}:{{LINE}}"', "-n", "3", "-c", "2", "-d", "0"],
        )

    assert result.exit_code == 0, result.output
    assert "             Command: [echo \"{{N}}:{{LINE}}\"]" in result.output
    assert "Job count to perform: [3]" in result.output
    assert "-" * 80 in result.output
    assert "> Duration:" in result.output
    assert "dispatched=3 succeeded=3 failed=0 timed_out=0 cancelled=no" in result.output
    for index in range(3):
        assert f"[{index}/3] [echo \"{index}:{index}\"] ==> [{index}:{index}]" in caplog.text


@posix_only
def test_stop_on_exits_non_zero(tmp_path: Path) -> None:
    lines = tmp_path / "lines.txt"
    lines.write_text("ok\nFAIL\nok\n", "utf-8")
    runner = CliRunner()

    result = runner.invoke(
        threadme,
        ["--cmd", "echo {{LINE}}", "-f", str(lines), "-c", "3", "--stop-on", "FAIL"],
    )

    assert result.exit_code == 1
    assert "Lines in file: [3]" in result.output
    assert "Stop if contains: 'FAIL'" in result.output
    assert "cancelled=yes" in result.output


@posix_only
def test_timed_out_jobs_are_counted() -> None:
    runner = CliRunner()

    result = runner.invoke(
        threadme,
        ["--cmd", "sleep 20", "-n", "2", "-c", "2", "-t", "200", "-d", "0"],
    )

    assert result.exit_code == 0
    assert "failed=2 timed_out=2 cancelled=no" in result.output


def test_missing_file_is_fatal_before_any_job(tmp_path: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(
        threadme,
        ["--cmd", "echo {{LINE}}", "-f", str(tmp_path / "missing.txt")],
    )

    assert result.exit_code == 1
    assert "does not exist" in result.output
    assert "Run summary" not in result.output


@pytest.mark.parametrize(
    ("args", "message"),
    [
        (["--cmd", "  "], "Empty command"),
        (["--cmd", "echo", "-c", "1"], "Concurrency must be > 1"),
        (["--cmd", "echo", "--forever", "-f", "x.txt"], "--forever cannot be combined"),
    ],
)
def test_configuration_errors_exit_non_zero(args: list[str], message: str) -> None:
    runner = CliRunner()

    result = runner.invoke(threadme, args)

    assert result.exit_code == 1
    assert message in result.output


def test_concurrency_default_comes_from_env(monkeypatch) -> None:
    monkeypatch.setenv("THREADME_CONCURRENCY", "1")
    runner = CliRunner()

    result = runner.invoke(threadme, ["--cmd", "echo"])

    assert result.exit_code == 1
    assert "Concurrency must be > 1" in result.output


def _start_run(tmp_path: Path, job: str, count: int) -> subprocess.Popen[str]:
    env = dict(os.environ)
    src_dir = str(Path(__file__).resolve().parents[1] / "src")
    env["PYTHONPATH"] = os.pathsep.join(filter(None, [src_dir, env.get("PYTHONPATH")]))
    command = "echo $$ > " + str(tmp_path) + "/pid-{{N}}; exec " + job
    return subprocess.Popen(  # noqa: S603
        [
            sys.executable,
            "-m",
            "threadme.main",
            "--cmd",
            command,
            "-n",
            str(count),
            "-c",
            "2",
            "-t",
            "0",
            "-d",
            "0",
        ],
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        env=env,
    )


def _job_pids(tmp_path: Path, expected: int) -> list[int]:
    deadline = time.monotonic() + 15
    while time.monotonic() < deadline:
        files = sorted(tmp_path.glob("pid-*"))
        contents = [path.read_text().strip() for path in files]
        if len(files) >= expected and all(contents):
            return [int(value) for value in contents]
        time.sleep(0.05)
    raise AssertionError("jobs did not start in time")


def _assert_gone(pids: list[int]) -> None:
    for pid in pids:
        with pytest.raises(ProcessLookupError):
            os.kill(pid, 0)


@posix_only
def test_sigint_stops_admission_and_drains_running_jobs(tmp_path: Path) -> None:
    run = _start_run(tmp_path, "sleep 1", count=6)
    pids = _job_pids(tmp_path, expected=2)

    run.send_signal(signal.SIGINT)
    stdout, stderr = run.communicate(timeout=30)

    assert run.returncode == 1, stderr
    assert "cancelled=yes" in stdout
    assert "Stop reason: received SIGINT" in stdout
    assert "succeeded=2" in stdout
    assert len(list(tmp_path.glob("pid-*"))) < 6
    _assert_gone(pids)


@posix_only
def test_second_sigint_kills_running_jobs(tmp_path: Path) -> None:
    run = _start_run(tmp_path, "sleep 60", count=4)
    pids = _job_pids(tmp_path, expected=2)
    started = time.monotonic()

    run.send_signal(signal.SIGINT)
    time.sleep(0.3)
    run.send_signal(signal.SIGINT)
    stdout, stderr = run.communicate(timeout=30)

    assert time.monotonic() - started < 30
    assert run.returncode == 1, stderr
    assert "cancelled=yes" in stdout
    assert "failed=2" in stdout
    assert "> Killed 2 running job(s)" in stderr
    _assert_gone(pids)
