# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

# stdlib
from collections.abc import Callable
from logging import getLogger
from os import environ
from typing import TypeVar

T = TypeVar("T")

log = getLogger(__name__)


# Operator inputs, read from the environment when not given in the deploy config
SHIFTBASE_API_URL_SETTING = "SHIFTBASE_API_URL"
SHIFTBASE_API_KEY_SETTING = "SHIFTBASE_API_KEY"
DB_CONNECTION_STRING_SETTING = "DB_CONNECTION_STRING"
DB_TARGET_TABLE_SETTING = "DB_TARGET_TABLE"
SUBSCRIPTION_ID_SETTING = "AZURE_SUBSCRIPTION_ID"
TENANT_ID_SETTING = "AZURE_TENANT_ID"
DEPLOY_PREFIX_SETTING = "DEPLOY_PREFIX"
DEPLOY_LOCATION_SETTING = "DEPLOY_LOCATION"
LOG_LEVEL_SETTING = "LOG_LEVEL"

# Function host runtime settings
FUNCTIONS_WORKER_RUNTIME_SETTING = "FUNCTIONS_WORKER_RUNTIME"
FUNCTIONS_EXTENSION_VERSION_SETTING = "FUNCTIONS_EXTENSION_VERSION"
WEBSITE_RUN_FROM_PACKAGE_SETTING = "WEBSITE_RUN_FROM_PACKAGE"
STORAGE_CONNECTION_SETTING = "AzureWebJobsStorage"
APPLICATIONINSIGHTS_CONNECTION_STRING_SETTING = "APPLICATIONINSIGHTS_CONNECTION_STRING"

# Defaults
DEFAULT_PREFIX = "shiftbase-sync"
DEFAULT_LOCATION = "westeurope"
DEFAULT_RUNTIME = "python"
DEFAULT_RUNTIME_VERSION = "3.11"
DEFAULT_EXTENSION_VERSION = "~4"
DEFAULT_LOG_LEVEL = "INFO"
LOG_LEVELS = ("DEBUG", "INFO", "WARN", "WARNING", "ERROR")


class MissingConfigOptionError(Exception):
    def __init__(self, option: str) -> None:
        super().__init__(f"Missing required configuration option: {option}")


def get_config_option(name: str) -> str:
    """Get a configuration option from the environment or raise a helpful error"""
    if option := environ.get(name):
        return option
    raise MissingConfigOptionError(name)


def parse_config_option(name: str, parse: Callable[[str], T | None], default: T) -> T:
    """Get a configuration option from the environment, parse it, or return a default"""
    try:
        value = environ.get(name)
        if value is None:
            return default
        result = parse(value)
        if result is None:
            log.error(f"Invalid value for configuration option {name}: {value}")
            return default
        return result
    except ValueError:
        log.error(f"Invalid value for configuration option {name}: {environ.get(name)}")
        return default


def parse_log_level(value: str) -> str | None:
    level = value.upper().strip()
    if level not in LOG_LEVELS:
        return None
    return level
