"""
Configuration loading utilities.

This module provides functions to load and parse project configuration
from JSON files.

File Loading Order:
    1. config.json - Scale set parameters and logging mode
    2. config_credentials_azure.json - Subscription, service principal and VM credential

Usage:
    from vmss_deployer.core.config_loader import load_scale_set_parameters

    params = load_scale_set_parameters(Path("./projects/web"))
"""

import json
from dataclasses import fields
from pathlib import Path
from typing import Any, Dict, Optional

from .. import constants as CONSTANTS
from ..logger import logger
from .context import ScaleSetParameters
from .exceptions import ConfigurationError

# Keys of config.json that are not scale set parameters
NON_PARAMETER_KEYS = {"mode"}

TUPLE_FIELDS = {"backend_ports", "nat_backend_ports", "zones"}
PORT_LIST_FIELDS = {"backend_ports", "nat_backend_ports"}


def _load_json_file(file_path: Path, required: bool = True) -> Dict[str, Any]:
    """
    Load a JSON file and return its contents as a dictionary.

    Args:
        file_path: Path to the JSON file
        required: If True, raise error when file is missing. If False, return empty dict.

    Returns:
        Parsed JSON content as dictionary

    Raises:
        ConfigurationError: If file is missing (when required) or has invalid JSON
    """
    if not file_path.exists():
        if required:
            raise ConfigurationError(
                f"Required configuration file not found: {file_path.name}",
                config_file=str(file_path)
            )
        return {}

    try:
        with open(file_path, "r", encoding="utf-8") as f:
            content = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigurationError(
            f"Invalid JSON in configuration file: {e}",
            config_file=str(file_path)
        )

    if not isinstance(content, dict):
        raise ConfigurationError(
            "Configuration file must contain a JSON object",
            config_file=str(file_path)
        )
    return content


def _require_fields(content: Dict[str, Any], file_name: str, file_path: Path) -> None:
    for field_name in CONSTANTS.CONFIG_SCHEMAS.get(file_name, []):
        if not content.get(field_name):
            raise ConfigurationError(
                f"Missing required field '{field_name}' in {file_name}",
                config_file=str(file_path)
            )


def _parse_port_list(name: str, value: Any, file_path: Path) -> Optional[tuple]:
    if value is None:
        return None
    if not isinstance(value, list) or not all(
        isinstance(port, int) and not isinstance(port, bool) for port in value
    ):
        raise ConfigurationError(
            f"Field '{name}' must be a list of integers",
            config_file=str(file_path)
        )
    return tuple(value)


def load_scale_set_parameters(project_path: Path) -> ScaleSetParameters:
    """
    Load scale set parameters from config.json.

    Unknown keys are ignored with a warning; list-valued fields are
    converted to tuples so the parameters stay immutable.

    Args:
        project_path: Path to the project directory containing config files

    Returns:
        ScaleSetParameters (names not yet defaulted)

    Raises:
        ConfigurationError: If config.json is missing, invalid, or lacks required fields

    Example:
        params = load_scale_set_parameters(Path("./projects/web"))
        print(params.vm_scale_set_name)  # "web"
    """
    config_path = project_path / CONSTANTS.CONFIG_FILE
    core_config = _load_json_file(config_path, required=True)
    _require_fields(core_config, CONSTANTS.CONFIG_FILE, config_path)

    known = {f.name for f in fields(ScaleSetParameters)}
    values: Dict[str, Any] = {}
    for key, value in core_config.items():
        if key in NON_PARAMETER_KEYS:
            continue
        if key not in known:
            logger.warning(f"Ignoring unknown key '{key}' in {CONSTANTS.CONFIG_FILE}")
            continue
        if key in PORT_LIST_FIELDS:
            value = _parse_port_list(key, value, config_path)
        elif key in TUPLE_FIELDS and value is not None:
            if not isinstance(value, list):
                raise ConfigurationError(
                    f"Field '{key}' must be a list",
                    config_file=str(config_path)
                )
            value = tuple(str(item) for item in value)
        values[key] = value

    if "instance_count" in values and (
        not isinstance(values["instance_count"], int) or isinstance(values["instance_count"], bool)
    ):
        raise ConfigurationError(
            "Field 'instance_count' must be an integer",
            config_file=str(config_path)
        )

    return ScaleSetParameters(**values)


def load_credentials(project_path: Path) -> Dict[str, Any]:
    """
    Load Azure credentials for the project.

    Expected keys:
        azure_subscription_id (required)
        azure_tenant_id, azure_client_id, azure_client_secret (optional service principal)
        admin_username, admin_password (VM administrator credential)

    Args:
        project_path: Path to the project directory

    Returns:
        Credentials dictionary

    Raises:
        ConfigurationError: If the file is missing or lacks the subscription id
    """
    credentials_path = project_path / CONSTANTS.CONFIG_CREDENTIALS_AZURE_FILE
    credentials = _load_json_file(credentials_path, required=True)
    _require_fields(credentials, CONSTANTS.CONFIG_CREDENTIALS_AZURE_FILE, credentials_path)
    return credentials


def load_mode(project_path: Path) -> str:
    """Return the logging mode from config.json ("" when unset)."""
    config = _load_json_file(project_path / CONSTANTS.CONFIG_FILE, required=False)
    return str(config.get("mode", ""))
