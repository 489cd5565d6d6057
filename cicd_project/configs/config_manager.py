from __future__ import annotations
import json, logging, re
from pathlib import Path
from typing import Any, Mapping
from aws_cdk import Stack
from cicd_project.configs.cicd_cfg import CICDCfg
from cicd_project.configs.error_handler import ErrorHandler

logger = logging.getLogger(__name__)

_VAR = re.compile(r"\$\{([A-Za-z0-9_]+)\}")

class ConfigManager:
    """
    Centralized JSON configuration loading for the CICD CDK project.

    Handles:
    - Path resolution for the config types (buildspecs, policies)
    - JSON file loading with ${Var} placeholder expansion
    """

    # Root config directory
    CONFIG_ROOT = Path(__file__).resolve().parent

    # Config type mappings to subdirectories
    CONFIG_PATHS = {
        "buildspecs": "buildspecs",
        "policies": "iam/policies",
    }

    def __init__(self, stack: Stack, cfg: CICDCfg):
        self.stack = stack
        self.cfg = cfg
        self.vars = cfg.vars(stack)

    def get_config_path(self, config_type: str, filename: str = None) -> Path:
        """
        Get the full path to a config file.

        Args:
            config_type: Type of config (buildspecs, policies)
            filename: Optional filename, if None returns the directory path

        Returns:
            Full path to the config file or directory
        """
        if config_type not in self.CONFIG_PATHS:
            raise ValueError(f"Unknown config type: {config_type}")

        base_path = self.CONFIG_ROOT / self.CONFIG_PATHS[config_type]

        if filename:
            return base_path / filename
        return base_path

    def expand_placeholders(self, obj: Any, vars: Mapping[str, str] = None) -> Any:
        """
        Recursively expand ${VAR} placeholders in strings, lists, and dicts.

        Unknown placeholders are left untouched.

        Args:
            obj: Object to expand placeholders in
            vars: Variables to substitute (uses stack vars if None)

        Returns:
            Object with placeholders expanded
        """
        if vars is None:
            vars = self.vars

        if isinstance(obj, str):
            return _VAR.sub(lambda m: str(vars.get(m.group(1), m.group(0))), obj)
        if isinstance(obj, list):
            return [self.expand_placeholders(x, vars) for x in obj]
        if isinstance(obj, dict):
            return {k: self.expand_placeholders(v, vars) for k, v in obj.items()}
        return obj

    def load_json(self, filepath: Path, expand_vars: bool = True) -> dict:
        """
        Load and parse a JSON file, optionally expanding placeholders.

        Raises:
            FileNotFoundError: If the file does not exist
        """
        ErrorHandler.validate_file_exists(filepath, "Config file")

        with open(filepath, "r", encoding="utf-8") as f:
            data = json.load(f)
        logger.debug("Loaded config file %s", filepath)

        if expand_vars:
            data = self.expand_placeholders(data)

        return data

    def load_config(self, config_type: str, filename: str, expand_vars: bool = True) -> dict:
        """
        Load a config file by type and filename.

        Args:
            config_type: Type of config (buildspecs, policies)
            filename: Name of the config file
            expand_vars: Whether to expand placeholders

        Returns:
            Parsed JSON config
        """
        filepath = self.get_config_path(config_type, filename)
        return self.load_json(filepath, expand_vars)
