import argparse
import json
from unittest.mock import MagicMock

import pytest

from bootstrapper import cli
from bootstrapper.orchestrator import RunOutcome, RunState
from bootstrapper.types import ConfigError, InstallationError


def namespace(**overrides) -> argparse.Namespace:
    values = {"config": None, "quiet": False, "debug": False, "base_url": None, "uninstall": False}
    values.update(overrides)
    return argparse.Namespace(**values)


class FakeBootstrapper:
    def __init__(self, state=RunState.COMPLETED, error=None):
        self.state = state
        self.error = error
        self.calls = []

    async def install(self, cancel=None):
        return self._finish("install")

    async def uninstall(self, cancel=None):
        return self._finish("uninstall")

    def _finish(self, name):
        self.calls.append(name)
        if self.error is not None:
            raise self.error
        return RunOutcome(self.state)


@pytest.fixture
def fake(monkeypatch):
    bootstrapper = FakeBootstrapper()
    factory = MagicMock(return_value=bootstrapper)
    monkeypatch.setattr(cli, "create_bootstrapper", factory)
    monkeypatch.setattr(cli, "cleanup_stale_binary", lambda: True)
    monkeypatch.setattr(cli, "setup_logging", lambda *args, **kwargs: None)
    bootstrapper.factory = factory
    return bootstrapper


def test_build_config_defaults():
    config = cli.build_config(namespace())
    assert config.base_url == "https://cdn.dolus.app/"
    assert not config.quiet


def test_build_config_flags_override_file(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"base_url": "https://a.example.com/", "install": {"app_name": "Example"}}))
    config = cli.build_config(namespace(config=str(path), quiet=True, base_url="https://b.example.com/"))

    assert config.base_url == "https://b.example.com/"
    assert config.quiet
    assert config.install.app_name == "Example"


def test_build_config_invalid_flag():
    with pytest.raises(ConfigError):
        cli.build_config(namespace(base_url="ftp://example.com"))


def test_main_install(fake):
    assert cli.main(["--quiet"]) == 0
    assert fake.calls == ["install"]
    assert fake.factory.call_args.args[0].quiet


def test_main_uninstall(fake):
    assert cli.main(["--quiet", "--uninstall"]) == 0
    assert fake.calls == ["uninstall"]


def test_main_failed_run(fake):
    fake.state = RunState.ABORTED
    assert cli.main(["--quiet"]) == 1


def test_main_stopped_run_succeeds(fake):
    fake.state = RunState.STOPPED
    assert cli.main(["--quiet"]) == 0


def test_main_updater_error(fake):
    fake.error = InstallationError("disk full")
    assert cli.main(["--quiet"]) == 1


def test_main_bad_config(fake, tmp_path, capsys):
    assert cli.main(["--config", str(tmp_path / "missing.json")]) == 1
    assert "Configuration file not found" in capsys.readouterr().err
    assert fake.calls == []
