import logging
from pathlib import Path
from typing import List
from unittest.mock import patch

import pytest

from multiprog.config import DelayConfig, LaunchConfig, LaunchMode
from multiprog.launcher import Launcher, build_launch_command, launch_env
from multiprog.utils.env import SlurmEnv
from multiprog.utils.exceptions import AllocationError, LaunchError, TaskSourceError

CALL = "multiprog.launcher.launcher.subprocess.call"


def read_lines(path: Path) -> List[str]:
    return path.read_text(encoding="utf-8").splitlines()


def make_launcher(tmp_path: Path, command: str, arguments=(), slots: int = 3, **kwargs) -> Launcher:
    config = LaunchConfig(command=command, arguments=list(arguments), workdir=str(tmp_path / "work"), **kwargs)
    return Launcher(config, SlurmEnv(job_id="42", ntasks=slots))


def test_file_mode_single_launch_with_slot_scripts(tmp_path: Path, command_file) -> None:
    path = command_file([f"./a.out {i} > out.{i}" for i in range(6)])
    launcher = make_launcher(tmp_path, str(path), slots=3)

    with patch(CALL, return_value=0) as call:
        assert launcher.run() == 0

    workdir = tmp_path / "work" / "multiprog.42"
    assert call.call_count == 1
    assert launcher.config_files == [workdir / "multiprog.conf"]
    assert read_lines(workdir / "multiprog.conf") == [f"{i} /bin/bash {workdir}/slot_%t.sh" for i in range(3)]
    assert read_lines(workdir / "slot_0.sh")[1:] == ["./a.out 0 > out.0", "./a.out 3 > out.3"]
    assert read_lines(workdir / "slot_1.sh")[1:] == ["./a.out 1 > out.1", "./a.out 4 > out.4"]
    assert read_lines(workdir / "slot_2.sh")[1:] == ["./a.out 2 > out.2", "./a.out 5 > out.5"]


def test_relative_workdir_gives_absolute_script_paths(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, command_file
) -> None:
    path = command_file(["echo a > a", "echo b > b"])
    monkeypatch.chdir(tmp_path)
    config = LaunchConfig(command=str(path), workdir="rel")
    launcher = Launcher(config, SlurmEnv(job_id="42", ntasks=2))

    with patch(CALL, return_value=0):
        launcher.run()

    workdir = tmp_path / "rel" / "multiprog.42"
    assert launcher.workdir == workdir
    assert read_lines(workdir / "multiprog.conf")[0] == f"0 /bin/bash {workdir}/slot_%t.sh"


def test_template_mode_pads_short_round(tmp_path: Path) -> None:
    launcher = make_launcher(tmp_path, "echo", ["a", "b"], slots=5, params=True)

    with patch(CALL, return_value=0) as call:
        assert launcher.run() == 0

    assert call.call_count == 1
    assert read_lines(launcher.config_files[0]) == ["0 echo a", "1 echo b", "2 true", "3 true", "4 true"]


def test_template_mode_runs_one_round_per_slot_batch(tmp_path: Path) -> None:
    launcher = make_launcher(tmp_path, "echo", [str(i) for i in range(7)], slots=3, params=True)

    with patch(CALL, return_value=0) as call:
        assert launcher.run() == 0

    assert call.call_count == 3
    assert [p.name for p in launcher.config_files] == ["multiprog.0.conf", "multiprog.1.conf", "multiprog.2.conf"]
    assert read_lines(launcher.config_files[0]) == ["0 echo 0", "1 echo 1", "2 echo 2"]
    assert read_lines(launcher.config_files[1]) == ["0 echo 3", "1 echo 4", "2 echo 5"]
    assert read_lines(launcher.config_files[2]) == ["0 echo 6", "1 true", "2 true"]


def test_uniform_mode_with_delay(tmp_path: Path) -> None:
    launcher = make_launcher(tmp_path, "echo hi", slots=4, delay=DelayConfig(enabled=True))

    with patch(CALL, return_value=0):
        assert launcher.run() == 0

    assert read_lines(launcher.config_files[0]) == [
        "0 sleep 0.0 && echo hi",
        "1 sleep 0.1 && echo hi",
        "2 sleep 0.2 && echo hi",
        "3 sleep 0.3 && echo hi",
    ]


def test_inline_delay_warns_about_missing_shell(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    launcher = make_launcher(tmp_path, "echo hi", slots=2, delay=DelayConfig(enabled=True))

    with caplog.at_level(logging.WARNING), patch(CALL, return_value=0):
        launcher.run()

    assert "not run through a shell" in caplog.text


def test_file_mode_delay_does_not_warn_about_shell(
    tmp_path: Path, caplog: pytest.LogCaptureFixture, command_file
) -> None:
    path = command_file(["echo a > a"])
    launcher = make_launcher(tmp_path, str(path), slots=1, delay=DelayConfig(enabled=True))

    with caplog.at_level(logging.WARNING), patch(CALL, return_value=0):
        launcher.run()

    assert "not run through a shell" not in caplog.text


def test_no_delay_prefix_when_disabled(tmp_path: Path) -> None:
    launcher = make_launcher(tmp_path, "echo hi", slots=2)

    with patch(CALL, return_value=0):
        launcher.run()

    assert all("sleep" not in line for line in read_lines(launcher.config_files[0]))


def test_file_mode_delay_goes_into_slot_scripts(tmp_path: Path, command_file) -> None:
    path = command_file(["echo a > a", "echo b > b", "echo c > c"])
    launcher = make_launcher(tmp_path, str(path), slots=2, delay=DelayConfig(enabled=True, increment=1.0))

    with patch(CALL, return_value=0):
        launcher.run()

    workdir = launcher.workdir
    assert read_lines(workdir / "slot_0.sh")[1:] == ["sleep 0.0 && echo a > a", "echo c > c"]
    assert read_lines(workdir / "slot_1.sh")[1:] == ["sleep 1.0 && echo b > b"]


def test_launcher_failure_stops_remaining_rounds(tmp_path: Path) -> None:
    launcher = make_launcher(tmp_path, "echo", [str(i) for i in range(9)], slots=3, params=True)

    with patch(CALL, side_effect=[0, 3, 0]) as call:
        assert launcher.run() == 3

    assert call.call_count == 2


def test_launcher_killed_by_signal(tmp_path: Path) -> None:
    launcher = make_launcher(tmp_path, "echo hi", slots=1)

    with patch(CALL, return_value=-9):
        assert launcher.run() == 137


def test_missing_launcher_binary(tmp_path: Path) -> None:
    launcher = make_launcher(tmp_path, "echo hi", slots=1)

    with patch(CALL, side_effect=FileNotFoundError("srun")):
        with pytest.raises(LaunchError):
            launcher.run()


def test_launch_command_and_thread_hint(tmp_path: Path) -> None:
    launcher = make_launcher(tmp_path, "echo hi", slots=2, threads=4, launcher_args=["--mpi=none"])

    with patch(CALL, return_value=0) as call:
        launcher.run()

    args, kwargs = call.call_args
    assert args[0] == [
        "srun",
        "--ntasks=2",
        "--cpus-per-task=4",
        "--mpi=none",
        "--multi-prog",
        str(launcher.config_files[0]),
    ]
    assert kwargs["env"]["OMP_NUM_THREADS"] == "4"


def test_build_launch_command_without_threads() -> None:
    assert build_launch_command(Path("/w/multiprog.conf"), 8) == [
        "srun",
        "--ntasks=8",
        "--multi-prog",
        "/w/multiprog.conf",
    ]
    assert "OMP_NUM_THREADS" not in launch_env()


def test_dry_run_writes_configs_only(tmp_path: Path) -> None:
    launcher = make_launcher(tmp_path, "echo hi", slots=2, dry_run=True)

    with patch(CALL) as call:
        assert launcher.run() == 0

    call.assert_not_called()
    assert launcher.config_files[0].exists()


def test_stale_files_from_previous_run_are_removed(tmp_path: Path) -> None:
    stale = tmp_path / "work" / "multiprog.42"
    stale.mkdir(parents=True)
    (stale / "multiprog.5.conf").write_text("0 old\n")

    launcher = make_launcher(tmp_path, "echo hi", slots=1)
    with patch(CALL, return_value=0):
        launcher.run()

    assert sorted(p.name for p in stale.iterdir()) == ["multiprog.conf"]


def test_precondition_failures_happen_before_launch(tmp_path: Path) -> None:
    config = LaunchConfig(command="echo hi", workdir=str(tmp_path))

    with patch(CALL) as call:
        with pytest.raises(AllocationError):
            Launcher(config, SlurmEnv()).run()
        with pytest.raises(TaskSourceError):
            make_launcher(tmp_path, str(tmp_path / "missing.txt")).run()

    call.assert_not_called()


def test_all_file_arguments_missing(tmp_path: Path) -> None:
    launcher = make_launcher(tmp_path, "wc -l", [str(tmp_path / "nope")])

    with pytest.raises(TaskSourceError):
        launcher.run()


def test_redirection_warning(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    launcher = make_launcher(tmp_path, "echo hi", slots=1)

    with caplog.at_level(logging.WARNING), patch(CALL, return_value=0):
        launcher.run()

    assert "No output redirection" in caplog.text


def test_detect_strategy(tmp_path: Path, command_file) -> None:
    path = command_file(["echo 1"])

    assert make_launcher(tmp_path, str(path)).detect_strategy() == LaunchMode.FILE
    assert make_launcher(tmp_path, "echo", ["x"]).detect_strategy() == LaunchMode.TEMPLATE
    assert make_launcher(tmp_path, "echo").detect_strategy() == LaunchMode.UNIFORM
