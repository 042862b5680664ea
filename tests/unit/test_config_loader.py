"""
Unit tests for YAML configuration loading.
"""
import pytest
from pydantic import ValidationError
from lipidshift.config.loader import load_config, load_config_with_overrides


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "analysis.yaml"
    path.write_text(
        "imputation_fraction: 0.25\n"
        "fc_up: 2.0\n"
        "fc_down: 0.4\n"
        "honor_diagnostics: true\n"
    )
    return path


class TestLoadConfig:
    """Test suite for load_config."""

    def test_values_from_file(self, config_file):
        config = load_config(config_file)

        assert config.imputation_fraction == 0.25
        assert config.fc_up == 2.0
        assert config.fc_down == 0.4
        assert config.honor_diagnostics == True

    def test_unset_fields_use_defaults(self, config_file):
        config = load_config(str(config_file))

        assert config.padj_threshold == 0.05
        assert config.log_epsilon == 1e-6

    def test_missing_file_raises_error(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="Config file not found"):
            load_config(tmp_path / "missing.yaml")

    def test_invalid_values_raise_error(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("fc_up: 0.5\nfc_down: 0.8\n")

        with pytest.raises(ValidationError, match="must be smaller than fc_up"):
            load_config(path)


class TestLoadConfigWithOverrides:
    """Test suite for load_config_with_overrides."""

    def test_override_applied(self, config_file):
        config = load_config_with_overrides(config_file, {'padj_threshold': 0.1})

        assert config.padj_threshold == 0.1
        assert config.fc_up == 2.0

    def test_override_revalidated(self, config_file):
        with pytest.raises(ValidationError):
            load_config_with_overrides(config_file, {'fc_down': 3.0})
