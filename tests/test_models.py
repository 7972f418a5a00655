import json

import pytest
from pydantic import ValidationError

from bootstrapper.models import BootstrapperConfig, InstallOptions, load_config
from bootstrapper.types import ConfigError


def test_defaults():
    config = BootstrapperConfig()
    assert config.base_url == "https://cdn.dolus.app/"
    assert config.install.app_name == "Dolus"
    assert config.install.main_executable == "Dolus.exe"
    assert config.minimum_windows_build == 17134
    assert config.dialog_title == "Dolus"
    assert config.log_name == "dboot.log"


def test_registry_paths():
    options = InstallOptions(app_name="App", uninstall_guid="12345678-1234-5678-1234-567812345678")
    assert options.formatted_uninstall_guid == "{12345678-1234-5678-1234-567812345678}"
    assert options.uninstall_registry_path == (
        "SOFTWARE\\Microsoft\\Windows\\CurrentVersion\\Uninstall\\{12345678-1234-5678-1234-567812345678}"
    )
    assert options.app_registry_path == "SOFTWARE\\App"


def test_executable_name_override():
    assert InstallOptions(app_name="App", executable_name="launcher.exe").main_executable == "launcher.exe"


def test_dialog_title_override():
    config = BootstrapperConfig.model_validate({"dialog": {"title": "Setup"}})
    assert config.dialog_title == "Setup"


@pytest.mark.parametrize("url", ["ftp://example.com", "example.com", ""])
def test_base_url_must_be_http(url):
    with pytest.raises(ValidationError):
        BootstrapperConfig(base_url=url)


def test_unknown_keys_rejected():
    with pytest.raises(ValidationError):
        BootstrapperConfig.model_validate({"base_uri": "https://example.com/"})
    with pytest.raises(ValidationError):
        InstallOptions(app_name="App", colour="blue")


def test_assignment_is_validated():
    config = BootstrapperConfig()
    with pytest.raises(ValidationError):
        config.base_url = "not a url"


def test_load_config(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps(
            {
                "base_url": "https://updates.example.com/",
                "install": {"app_name": "Example", "publisher": "Example Inc."},
                "launch_after_install": False,
            }
        )
    )
    config = load_config(path)
    assert config.base_url == "https://updates.example.com/"
    assert config.install.app_name == "Example"
    assert config.install.app_registry_path == "SOFTWARE\\Example"
    assert not config.launch_after_install


def test_load_config_missing_file(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        load_config(tmp_path / "missing.json")


@pytest.mark.parametrize("content", ["{oops", '{"minimum_windows_build": -1}', '{"install": {"app_name": ""}}'])
def test_load_config_invalid(tmp_path, content):
    path = tmp_path / "config.json"
    path.write_text(content)
    with pytest.raises(ConfigError):
        load_config(path)


def test_package_exports_resolve():
    import bootstrapper
    from bootstrapper.types import UpdaterError

    exported = {name: getattr(bootstrapper, name) for name in bootstrapper.__all__}
    exported_errors = {
        name for name, value in exported.items() if isinstance(value, type) and issubclass(value, UpdaterError)
    }
    assert exported_errors == {
        "UpdaterError",
        "InstallationError",
        "OperationCancelled",
        "ConfigurationCorruption",
        "ConfigError",
        "CatalogDecodeError",
    }
