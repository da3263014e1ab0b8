# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

# stdlib
from dataclasses import dataclass, field
from logging import getLogger
from os import environ
from typing import Any

# 3p
from jsonschema import ValidationError, validate
from yaml import YAMLError, safe_load

# project
from config.env import (
    DB_CONNECTION_STRING_SETTING,
    DB_TARGET_TABLE_SETTING,
    DEFAULT_EXTENSION_VERSION,
    DEFAULT_LOCATION,
    DEFAULT_LOG_LEVEL,
    DEFAULT_PREFIX,
    DEFAULT_RUNTIME,
    DEFAULT_RUNTIME_VERSION,
    DEPLOY_LOCATION_SETTING,
    DEPLOY_PREFIX_SETTING,
    LOG_LEVEL_SETTING,
    SHIFTBASE_API_KEY_SETTING,
    SHIFTBASE_API_URL_SETTING,
    SUBSCRIPTION_ID_SETTING,
    TENANT_ID_SETTING,
    get_config_option,
    parse_config_option,
    parse_log_level,
)

log = getLogger(__name__)

# Sample configuration file, written by `deploy --generate-config`
CONFIG_TEMPLATE = """# Function host deployment configuration
# Generate this file with: deploy-function-host --generate-config config.yaml
# Then run: deploy-function-host --config config.yaml
# Empty values fall back to the matching environment variable.

# Azure configuration
azure:
  # Project prefix used in every resource name (letters, digits and hyphens)
  prefix: "shiftbase-sync"
  # Azure region for every resource of the run
  location: "westeurope"
  # Subscription ID (AZURE_SUBSCRIPTION_ID, defaults to the first enabled subscription)
  subscription_id: ""
  # Expected tenant ID (AZURE_TENANT_ID, optional)
  tenant_id: ""

# Function host runtime
function:
  runtime: "python"
  runtime_version: "3.11"
  extension_version: "~4"

# Shiftbase API (SHIFTBASE_API_URL, SHIFTBASE_API_KEY)
shiftbase:
  api_url: ""
  # Prefer the environment variable over storing the key in this file
  api_key: ""

# Target database (DB_CONNECTION_STRING, DB_TARGET_TABLE)
database:
  connection_string: ""
  target_table: ""

# Logging configuration for the deployment script
logging:
  # Log level (DEBUG, INFO, WARNING, ERROR)
  level: "INFO"
"""


def _string_section(*keys: str) -> dict[str, Any]:
    return {
        "type": "object",
        "properties": {key: {"type": "string"} for key in keys},
        "additionalProperties": False,
    }


CONFIG_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "azure": {
            "type": "object",
            "properties": {
                "prefix": {"type": "string", "pattern": "^[A-Za-z0-9-]*$"},
                "location": {"type": "string", "pattern": "^[a-z0-9]*$"},
                "subscription_id": {"type": "string"},
                "tenant_id": {"type": "string"},
            },
            "additionalProperties": False,
        },
        "function": _string_section("runtime", "runtime_version", "extension_version"),
        "shiftbase": _string_section("api_url", "api_key"),
        "database": _string_section("connection_string", "target_table"),
        "logging": {
            "type": "object",
            "properties": {"level": {"enum": ["", "DEBUG", "INFO", "WARN", "WARNING", "ERROR"]}},
            "additionalProperties": False,
        },
    },
    "additionalProperties": False,
}


class InvalidConfigError(Exception):
    pass


@dataclass(frozen=True)
class DeployConfig:
    """Settings for a single deployment run, merged from the config file, the environment and defaults"""

    api_url: str
    api_key: str = field(repr=False)
    db_connection_string: str = field(repr=False)
    db_target_table: str
    prefix: str = DEFAULT_PREFIX
    location: str = DEFAULT_LOCATION
    subscription_id: str | None = None
    tenant_id: str | None = None
    runtime: str = DEFAULT_RUNTIME
    runtime_version: str = DEFAULT_RUNTIME_VERSION
    extension_version: str = DEFAULT_EXTENSION_VERSION
    log_level: str = DEFAULT_LOG_LEVEL

    @property
    def secret_values(self) -> list[str]:
        return [self.api_key, self.db_connection_string]


def load_config_file(config_path: str | None) -> dict[str, Any]:
    """Load and validate the YAML deploy config. No path means an empty config."""
    if not config_path:
        return {}
    try:
        with open(config_path) as f:
            config = safe_load(f)
    except FileNotFoundError as e:
        raise InvalidConfigError(f"Configuration file '{config_path}' not found") from e
    except YAMLError as e:
        raise InvalidConfigError(f"Error parsing configuration file '{config_path}': {e}") from e
    config = config or {}
    try:
        validate(instance=config, schema=CONFIG_SCHEMA)
    except ValidationError as e:
        raise InvalidConfigError(f"Invalid configuration file '{config_path}': {e.message}") from e
    return config


def build_deploy_config(file_config: dict[str, Any], **overrides: str | None) -> DeployConfig:
    """Merge the deploy config file with the environment.

    Precedence is `overrides` (command line flags), then the file, then the environment, then defaults.
    Raises MissingConfigOptionError if a required operator input is missing everywhere."""
    azure_config = file_config.get("azure", {})
    function_config = file_config.get("function", {})
    shiftbase_config = file_config.get("shiftbase", {})
    database_config = file_config.get("database", {})
    logging_config = file_config.get("logging", {})

    log_level = (
        overrides.get("log_level")
        or logging_config.get("level")
        or parse_config_option(LOG_LEVEL_SETTING, parse_log_level, DEFAULT_LOG_LEVEL)
    )

    return DeployConfig(
        api_url=shiftbase_config.get("api_url") or get_config_option(SHIFTBASE_API_URL_SETTING),
        api_key=shiftbase_config.get("api_key") or get_config_option(SHIFTBASE_API_KEY_SETTING),
        db_connection_string=database_config.get("connection_string")
        or get_config_option(DB_CONNECTION_STRING_SETTING),
        db_target_table=database_config.get("target_table") or get_config_option(DB_TARGET_TABLE_SETTING),
        prefix=overrides.get("prefix")
        or azure_config.get("prefix")
        or environ.get(DEPLOY_PREFIX_SETTING)
        or DEFAULT_PREFIX,
        location=overrides.get("location")
        or azure_config.get("location")
        or environ.get(DEPLOY_LOCATION_SETTING)
        or DEFAULT_LOCATION,
        subscription_id=overrides.get("subscription_id")
        or azure_config.get("subscription_id")
        or environ.get(SUBSCRIPTION_ID_SETTING)
        or None,
        tenant_id=azure_config.get("tenant_id") or environ.get(TENANT_ID_SETTING) or None,
        runtime=function_config.get("runtime") or DEFAULT_RUNTIME,
        runtime_version=function_config.get("runtime_version") or DEFAULT_RUNTIME_VERSION,
        extension_version=function_config.get("extension_version") or DEFAULT_EXTENSION_VERSION,
        log_level=log_level.upper(),
    )


def generate_config_file(output_path: str) -> None:
    """Write the sample configuration file to `output_path`"""
    with open(output_path, "w") as f:
        f.write(CONFIG_TEMPLATE)
    log.info("Sample configuration file generated at: %s", output_path)
