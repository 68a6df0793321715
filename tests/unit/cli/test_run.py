from unittest.mock import patch

import pytest

from imgsync.application.pipeline import PipelineResult
from imgsync.cli.commands import run as run_module
from imgsync.domain.shared.error import ConfigurationError

CONFIG_YAML = """
registries:
  - name: a
    url: a.example.com
import:
  enabled: true
"""


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    path = tmp_path / "imgsync.yaml"
    path.write_text(CONFIG_YAML)
    # load_config points IMGSYNC_CONFIG_FILE at --config; restored after the test
    monkeypatch.setenv("IMGSYNC_CONFIG_FILE", str(path))
    return path


def test_run_invokes_pipeline(config_file):
    with (
        patch.object(run_module, "configure_logging"),
        patch.object(run_module, "execute", return_value=PipelineResult()) as execute,
    ):
        run_module.run(config=config_file, all_=True)

    config = execute.call_args.args[0]
    assert config.all is True
    assert config.import_.enabled is True


def test_check_disables_import(config_file):
    with (
        patch.object(run_module, "configure_logging"),
        patch.object(run_module, "execute", return_value=PipelineResult()) as execute,
    ):
        run_module.check_only(config=config_file)

    assert execute.call_args.args[0].import_.enabled is False


def test_configuration_error_exits_non_zero(config_file):
    config_file.write_text("registries: []\n")

    with patch.object(run_module, "configure_logging"), pytest.raises(SystemExit) as exc_info:
        run_module.run(config=config_file)

    assert exc_info.value.code == 1


def test_missing_config_file_exits_non_zero(config_file, tmp_path):
    with pytest.raises(SystemExit) as exc_info:
        run_module.run(config=tmp_path / "missing.yaml")

    assert exc_info.value.code == 1


def test_malformed_yaml_exits_non_zero(config_file):
    config_file.write_text("registries: [\n  - name: a\n")

    with pytest.raises(SystemExit) as exc_info:
        run_module.run(config=config_file)

    assert exc_info.value.code == 1


def test_schema_error_exits_non_zero(config_file):
    config_file.write_text("registry:\n  concurrency: many\n")

    with pytest.raises(SystemExit) as exc_info:
        run_module.run(config=config_file)

    assert exc_info.value.code == 1


def test_schema_error_becomes_configuration_error(config_file):
    config_file.write_text("registry:\n  concurrency: many\n")

    with pytest.raises(ConfigurationError, match="Invalid configuration"):
        run_module.load_config(config_file)
