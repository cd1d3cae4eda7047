"""Tests for the command-line entry point"""

import pytest
from typer.testing import CliRunner

from conftest import FakeAdapter
from devboxlab import __version__
from devboxlab.cli import main as main_module
from devboxlab.cli.main import app
from devboxlab.config import config
from devboxlab.exceptions import StopError
from devboxlab.models.environment import load_environment

runner = CliRunner()


@pytest.fixture
def fake(monkeypatch, tmp_path):
    """Run the CLI from an empty directory against a fake adapter."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("DEVBOXLAB_FILE", raising=False)
    adapter = FakeAdapter()
    monkeypatch.setattr(main_module, "ComposeAdapter", lambda *args, **kwargs: adapter)
    return adapter


class TestUsage:
    def test_unknown_verb(self, fake, monkeypatch):
        def never(*args, **kwargs):
            raise AssertionError("controller built for an unknown verb")

        monkeypatch.setattr(main_module, "build_controller", never)
        result = runner.invoke(app, ["bogus"])
        assert result.exit_code == 1
        assert "Unknown command: bogus" in result.output
        assert "Usage" in result.output
        assert fake.calls == []

    def test_unknown_host(self, fake):
        result = runner.invoke(app, ["connect9"])
        assert result.exit_code == 1
        assert "No host #9" in result.output
        assert fake.calls == []

    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output


class TestInit:
    def test_writes_default_descriptor(self, fake, tmp_path):
        result = runner.invoke(app, ["init", "-f", "lab.yml"])
        assert result.exit_code == 0
        env = load_environment(str(tmp_path / "lab.yml"))
        assert env.host_names == ["dev-box-1", "dev-box-2"]
        assert env.network.subnet == "172.20.0.0/16"

    def test_refuses_overwrite(self, fake, tmp_path):
        (tmp_path / "lab.yml").write_text("keep: me\n")
        result = runner.invoke(app, ["init", "-f", "lab.yml"])
        assert result.exit_code == 1
        assert (tmp_path / "lab.yml").read_text() == "keep: me\n"

    def test_force_overwrites(self, fake, tmp_path):
        (tmp_path / "lab.yml").write_text("keep: me\n")
        result = runner.invoke(app, ["init", "-f", "lab.yml", "--force"])
        assert result.exit_code == 0
        assert "dev-box-1" in (tmp_path / "lab.yml").read_text()


class TestVerbs:
    def test_status_nothing_running(self, fake):
        result = runner.invoke(app, ["status"])
        assert result.exit_code == 0
        assert "No containers found for this environment." in result.output
        assert fake.call_names == ["ps"]

    def test_status_running(self, fake):
        fake.running.update({"dev-box-1", "dev-box-2"})
        result = runner.invoke(app, ["status"])
        assert result.exit_code == 0
        assert "dev-box-1" in result.output
        assert "running" in result.output

    def test_stop(self, fake):
        result = runner.invoke(app, ["stop"])
        assert result.exit_code == 0
        assert "Containers stopped" in result.output
        assert fake.call_names == ["down"]

    def test_engine_failure_exit_code(self, fake):
        fake.failures["down"] = StopError("daemon unavailable", 3)
        result = runner.invoke(app, ["stop"])
        assert result.exit_code == 3
        assert "daemon unavailable" in result.output

    def test_invalid_descriptor(self, fake, tmp_path):
        (tmp_path / "lab.yml").write_text("name: lab\nhosts: []\n")
        result = runner.invoke(app, ["status", "-f", "lab.yml"])
        assert result.exit_code == 1
        assert fake.calls == []

    def test_missing_explicit_descriptor(self, fake):
        result = runner.invoke(app, ["status", "-f", "other.yml"])
        assert result.exit_code == 1
        assert "descriptor not found" in result.output

    def test_start_reports(self, fake, monkeypatch, tmp_path):
        monkeypatch.setattr(main_module, "check_dependencies", lambda: None)
        result = runner.invoke(app, ["start", "--settle", "0"])
        assert result.exit_code == 0, result.output
        assert fake.call_names[:2] == ["build", "up"]
        assert "Testing Network Connectivity" in result.output
        assert "Usage Examples" in result.output
        assert "Environment is up" in result.output
        assert (tmp_path / "shared" / "README.md").is_file()


class TestEngineErrors:
    """Engine and filesystem failures end in one error line, not a traceback"""

    @pytest.fixture(autouse=True)
    def workdir(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("DEVBOXLAB_FILE", raising=False)

    def test_unwritable_compose_dir(self, tmp_path):
        (tmp_path / ".devboxlab").write_text("not a directory")
        result = runner.invoke(app, ["status"])
        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)
        assert "[ERROR]" in result.output
        assert "Traceback" not in result.output

    def test_missing_configured_compose(self, monkeypatch):
        monkeypatch.setattr(config, "COMPOSE_COMMAND", "nonexistent-compose")
        result = runner.invoke(app, ["status"])
        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)
        assert "[ERROR]" in result.output
        assert "nonexistent-compose" in result.output
