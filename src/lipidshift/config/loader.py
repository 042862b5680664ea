"""Analysis configuration loading from YAML files."""
from pathlib import Path
from typing import Any, Dict, Union

import pydantic_yaml

from ..core.models.statistics import AnalysisConfig


def load_config(config_path: Union[Path, str]) -> AnalysisConfig:
    """
    Load and validate an analysis configuration from a YAML file.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Validated AnalysisConfig instance

    Raises:
        FileNotFoundError: If config file doesn't exist
        pydantic.ValidationError: If config is invalid
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, "r") as f:
        yaml_content = f.read()

    return pydantic_yaml.parse_yaml_raw_as(AnalysisConfig, yaml_content)


def load_config_with_overrides(
    config_path: Union[Path, str],
    overrides: Dict[str, Any],
) -> AnalysisConfig:
    """
    Load config from YAML and apply flat key overrides, then re-validate.

    Args:
        config_path: Path to YAML configuration file
        overrides: Field name -> value

    Returns:
        Validated AnalysisConfig with overrides applied

    Raises:
        FileNotFoundError: If config file doesn't exist
        pydantic.ValidationError: If final config is invalid
    """
    config_dict = load_config(config_path).model_dump()
    config_dict.update(overrides)
    return AnalysisConfig.model_validate(config_dict)
