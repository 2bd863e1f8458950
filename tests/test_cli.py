from click.testing import CliRunner

import mcworkshop.cli as cli_module

CONFIG = (
    "provider: rackspace\n"
    "keys_dir: ./keys\n"
    "script_timeout_seconds: 600\n"
    "rackspace:\n"
    "  name: rackspace\n"
    "  identity: myuser\n"
    "  credential: myapikey\n"
    "  location: DFW\n"
    "  image: Ubuntu 12.04\n"
    "  hardware: 2\n"
)


def _fake_workshop(captured, exit_code=0):
    class FakeWorkshop:
        def __init__(self, **kwargs):
            captured.update(kwargs)

        def run(self):
            captured["action"] = "run"
            return exit_code

        def destroy(self):
            captured["action"] = "destroy"
            return exit_code

    return FakeWorkshop


def test_deploy_uses_config_and_allows_cli_override(tmp_path, monkeypatch):
    config_file = tmp_path / "workshop.yml"
    config_file.write_text(CONFIG, encoding="utf-8")
    captured = {}
    monkeypatch.setattr(cli_module, "Workshop", _fake_workshop(captured))

    result = CliRunner().invoke(
        cli_module.main,
        [
            "--config",
            str(config_file),
            "--group",
            "demo",
            "deploy",
            "--script-timeout-seconds",
            "90",
            "--parallel",
            "--no-positional-binding",
        ],
    )

    assert result.exit_code == 0, result.output
    settings = captured["settings"]
    assert captured["action"] == "run"
    assert captured["parallel"] is True
    assert captured["report_file"] is None
    assert settings.group == "demo"
    assert settings.keys_dir == "./keys"
    assert settings.hardware == "2"
    assert settings.script_timeout_seconds == 90.0
    assert settings.allow_positional_binding is False


def test_deploy_uses_default_config_file_when_present(tmp_path, monkeypatch):
    (tmp_path / ".mcworkshop.yml").write_text(CONFIG, encoding="utf-8")
    captured = {}
    monkeypatch.setattr(cli_module, "Workshop", _fake_workshop(captured))
    monkeypatch.chdir(tmp_path)

    result = CliRunner().invoke(cli_module.main, ["deploy"])

    assert result.exit_code == 0, result.output
    settings = captured["settings"]
    assert settings.provider == "rackspace"
    assert settings.group == "multi-cloud-workshop"
    assert settings.script_timeout_seconds == 600.0
    assert settings.allow_positional_binding is True
    assert captured["parallel"] is False


def test_deploy_propagates_workshop_exit_code(tmp_path, monkeypatch):
    config_file = tmp_path / "workshop.yml"
    config_file.write_text(CONFIG, encoding="utf-8")
    monkeypatch.setattr(cli_module, "Workshop", _fake_workshop({}, exit_code=1))

    result = CliRunner().invoke(cli_module.main, ["--config", str(config_file), "deploy"])

    assert result.exit_code == 1


def test_deploy_reports_missing_provider(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    result = CliRunner().invoke(cli_module.main, ["deploy"])

    assert result.exit_code == 1
    assert "No provider selected" in result.output


def test_destroy_requires_confirmation_flag(tmp_path, monkeypatch):
    config_file = tmp_path / "workshop.yml"
    config_file.write_text(CONFIG, encoding="utf-8")
    captured = {}
    monkeypatch.setattr(cli_module, "Workshop", _fake_workshop(captured))

    result = CliRunner().invoke(cli_module.main, ["--config", str(config_file), "destroy", "--yes"])

    assert result.exit_code == 0, result.output
    assert captured["action"] == "destroy"
    assert captured["settings"].group == "multi-cloud-workshop"
