"""End-to-end tests of the process entry point."""

import io

import pytest

from DetectorLinac.core import run_manager as run_manager_module
from DetectorLinac.core.data_models import CommandMode
from DetectorLinac.main import main, run, parse_args, EXIT_SUCCESS, EXIT_FAILURE, EXIT_USAGE
from DetectorLinac.utils.config import RunConfig, THREAD_ENV_VAR
from DetectorLinac.utils.validation import MacroNotFoundError


@pytest.fixture
def workspace(tmp_path, monkeypatch, small_config):
    """Run from a scratch directory with a small configuration file."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv(THREAD_ENV_VAR, "3")
    small_config.edep_log_path = "./SteppingAction.txt"
    small_config.vis_macro = "vis.mac"
    small_config.to_yaml(str(tmp_path / "run.yaml"))
    (tmp_path / "run1.mac").write_text(
        "/control/verbose 1\n"
        "/run/printProgress 5\n"
        "/gun/energy 2 MeV\n"
        "/run/beamOn 10\n"
    )
    return tmp_path


def test_parse_args():
    args = parse_args(["--config", "run.yaml", "--log-level", "DEBUG", "run1.mac"])
    assert args.config == "run.yaml"
    assert args.log_level == "DEBUG"
    assert args.scripts == ["run1.mac"]
    assert parse_args([]).scripts == []


def test_batch_run_is_reproducible(workspace):
    assert main(["--config", "run.yaml", "run1.mac"]) == EXIT_SUCCESS
    first = (workspace / "SteppingAction.txt").read_text()
    assert main(["--config", "run.yaml", "run1.mac"]) == EXIT_SUCCESS
    second = (workspace / "SteppingAction.txt").read_text()
    assert first
    assert first == second
    assert {line.split()[0] for line in first.splitlines()} == {"0"}


def test_log_independent_of_thread_count(workspace, monkeypatch):
    assert main(["--config", "run.yaml", "run1.mac"]) == EXIT_SUCCESS
    threaded = (workspace / "SteppingAction.txt").read_text()
    monkeypatch.setattr(run_manager_module, "MULTITHREADED", False)
    assert main(["--config", "run.yaml", "run1.mac"]) == EXIT_SUCCESS
    assert (workspace / "SteppingAction.txt").read_text() == threaded


def test_missing_script_exits_with_failure(workspace):
    assert main(["--config", "run.yaml", "absent.mac"]) == EXIT_FAILURE
    # The log is still created and truncated before dispatch
    assert (workspace / "SteppingAction.txt").read_text() == ""


def test_two_scripts_is_a_usage_error(workspace):
    (workspace / "SteppingAction.txt").write_text("stale\n")
    assert main(["--config", "run.yaml", "run1.mac", "run2.mac"]) == EXIT_USAGE
    assert (workspace / "SteppingAction.txt").read_text() == ""


def test_bad_configuration_exits_with_failure(workspace):
    (workspace / "SteppingAction.txt").write_text("stale\n")
    (workspace / "bad.yaml").write_text("physics_modules: [G4OpticalPhysics]\n")
    assert main(["--config", "bad.yaml", "run1.mac"]) == EXIT_FAILURE
    assert (workspace / "SteppingAction.txt").read_text() == ""


def test_unreadable_configuration_exits_with_failure(workspace):
    (workspace / "SteppingAction.txt").write_text("stale\n")
    (workspace / "bad.yaml").write_text("geometry: {dimensions: [a, 5, 5]}\n")
    assert main(["--config", "bad.yaml", "run1.mac"]) == EXIT_FAILURE
    assert (workspace / "SteppingAction.txt").read_text() == ""


def test_failing_command_exits_with_failure(workspace):
    (workspace / "bad.mac").write_text("/run/beamOn 1\n/gun/particle neutron\n")
    assert main(["--config", "run.yaml", "bad.mac"]) == EXIT_FAILURE


def test_log_file_option(workspace):
    assert main(["--config", "run.yaml", "--log-file", "logs/run.log", "run1.mac"]) == EXIT_SUCCESS
    assert "Batch mode" in (workspace / "logs" / "run.log").read_text()


def test_interactive_run(workspace):
    config = RunConfig.from_yaml(str(workspace / "run.yaml"))
    config.visualization = True
    (workspace / "vis.mac").write_text("/vis/open OGL\n/vis/drawVolume\n")
    stdin = io.StringIO("/run/beamOn 2\n/gun/bogus\nexit\n")
    stdout = io.StringIO()

    assert run(config, CommandMode.interactive(), stdin=stdin, stdout=stdout) == EXIT_SUCCESS

    assert "ERROR:" in stdout.getvalue()
    events = {line.split()[1] for line in (workspace / "SteppingAction.txt").read_text().splitlines()}
    assert events <= {"0", "1"}


def test_run_raises_for_missing_script(workspace):
    config = RunConfig.from_yaml(str(workspace / "run.yaml"))
    with pytest.raises(MacroNotFoundError):
        run(config, CommandMode.batch("absent.mac"), environ={})
