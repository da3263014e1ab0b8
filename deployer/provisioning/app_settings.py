# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

# stdlib
from collections.abc import Iterable
from typing import Final, NamedTuple

# project
from config.deploy_config import DeployConfig
from config.env import (
    APPLICATIONINSIGHTS_CONNECTION_STRING_SETTING,
    DB_CONNECTION_STRING_SETTING,
    DB_TARGET_TABLE_SETTING,
    FUNCTIONS_EXTENSION_VERSION_SETTING,
    FUNCTIONS_WORKER_RUNTIME_SETTING,
    SHIFTBASE_API_KEY_SETTING,
    SHIFTBASE_API_URL_SETTING,
    WEBSITE_RUN_FROM_PACKAGE_SETTING,
)

RUN_FROM_PACKAGE: Final = "1"

SECRET_SETTINGS: Final = frozenset(
    {
        SHIFTBASE_API_KEY_SETTING,
        DB_CONNECTION_STRING_SETTING,
        APPLICATIONINSIGHTS_CONNECTION_STRING_SETTING,
    }
)


class AppSetting(NamedTuple):
    name: str
    value: str
    secret: bool = False


def app_setting(name: str, value: str) -> AppSetting:
    return AppSetting(name, value, name in SECRET_SETTINGS)


def get_telemetry_connection_string(instrumentation_key: str) -> str:
    return f"InstrumentationKey={instrumentation_key}"


def compose_app_settings(config: DeployConfig, instrumentation_key: str | None) -> list[AppSetting]:
    """Build the function host's settings in order.
    The telemetry connection string is only added when we have a key for it"""
    settings = [
        app_setting(FUNCTIONS_WORKER_RUNTIME_SETTING, config.runtime),
        app_setting(FUNCTIONS_EXTENSION_VERSION_SETTING, config.extension_version),
        app_setting(WEBSITE_RUN_FROM_PACKAGE_SETTING, RUN_FROM_PACKAGE),
        app_setting(SHIFTBASE_API_URL_SETTING, config.api_url),
        app_setting(SHIFTBASE_API_KEY_SETTING, config.api_key),
        app_setting(DB_CONNECTION_STRING_SETTING, config.db_connection_string),
        app_setting(DB_TARGET_TABLE_SETTING, config.db_target_table),
    ]
    if instrumentation_key:
        settings.append(
            app_setting(
                APPLICATIONINSIGHTS_CONNECTION_STRING_SETTING, get_telemetry_connection_string(instrumentation_key)
            )
        )
    return settings


def settings_to_properties(settings: Iterable[AppSetting]) -> dict[str, str]:
    return {setting.name: setting.value for setting in settings}


def secret_values(settings: Iterable[AppSetting]) -> list[str]:
    return [setting.value for setting in settings if setting.secret and setting.value]
