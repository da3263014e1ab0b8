# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

# stdlib
from random import Random, SystemRandom
from re import fullmatch
from typing import Final, NamedTuple

RESOURCE_GROUP_INFIX: Final = "-rg-"
FUNCTION_APP_INFIX: Final = "-func-"
HOSTING_PLAN_INFIX: Final = "-plan-"
STORAGE_ACCOUNT_TOKEN: Final = "stor"
APP_INSIGHTS_MARKER: Final = "appi-"

SUFFIX_MIN: Final = 1000
SUFFIX_MAX: Final = 9999

RESOURCE_GROUP_MAX_LENGTH: Final = 90
FUNCTION_APP_MAX_LENGTH: Final = 60
HOSTING_PLAN_MAX_LENGTH: Final = 60
APP_INSIGHTS_MAX_LENGTH: Final = 255
STORAGE_ACCOUNT_MIN_LENGTH: Final = 3
STORAGE_ACCOUNT_MAX_LENGTH: Final = 24

HYPHENATED_NAME_PATTERN: Final = r"[A-Za-z0-9][A-Za-z0-9-]*[A-Za-z0-9]"
STORAGE_ACCOUNT_NAME_PATTERN: Final = r"[a-z0-9]+"

RESOURCE_GROUP_KIND: Final = "resource group"
STORAGE_ACCOUNT_KIND: Final = "storage account"
APP_INSIGHTS_KIND: Final = "application insights component"
HOSTING_PLAN_KIND: Final = "hosting plan"
FUNCTION_APP_KIND: Final = "function app"


class NamingError(Exception):
    pass


class DeploymentIdentity(NamedTuple):
    """The project prefix and the random suffix shared by every resource name of a run"""

    prefix: str
    suffix: int

    @classmethod
    def generate(cls, prefix: str, rng: Random | None = None) -> "DeploymentIdentity":
        """Draw the run's suffix, once"""
        return cls(prefix, (rng or SystemRandom()).randint(SUFFIX_MIN, SUFFIX_MAX))


class ResourceNames(NamedTuple):
    resource_group: str
    storage_account: str
    app_insights: str
    hosting_plan: str
    function_app: str


class ProvisionedResource(NamedTuple):
    kind: str
    name: str
    location: str
    depends_on: tuple[str, ...] = ()


def _check_hyphenated_name(kind: str, name: str, max_length: int) -> str:
    if len(name) > max_length:
        raise NamingError(f"{kind} name '{name}' is longer than {max_length} characters")
    if not fullmatch(HYPHENATED_NAME_PATTERN, name):
        raise NamingError(f"{kind} name '{name}' may only contain letters, digits and inner hyphens")
    return name


def get_resource_group_name(identity: DeploymentIdentity) -> str:
    return _check_hyphenated_name(
        RESOURCE_GROUP_KIND,
        f"{identity.prefix}{RESOURCE_GROUP_INFIX}{identity.suffix}",
        RESOURCE_GROUP_MAX_LENGTH,
    )


def get_function_app_name(identity: DeploymentIdentity) -> str:
    return _check_hyphenated_name(
        FUNCTION_APP_KIND,
        f"{identity.prefix}{FUNCTION_APP_INFIX}{identity.suffix}",
        FUNCTION_APP_MAX_LENGTH,
    )


def get_hosting_plan_name(identity: DeploymentIdentity) -> str:
    return _check_hyphenated_name(
        HOSTING_PLAN_KIND,
        f"{identity.prefix}{HOSTING_PLAN_INFIX}{identity.suffix}",
        HOSTING_PLAN_MAX_LENGTH,
    )


def get_app_insights_name(identity: DeploymentIdentity) -> str:
    return _check_hyphenated_name(
        APP_INSIGHTS_KIND, APP_INSIGHTS_MARKER + get_function_app_name(identity), APP_INSIGHTS_MAX_LENGTH
    )


def get_storage_account_name(identity: DeploymentIdentity) -> str:
    """Storage account names are 3-24 lowercase letters and digits, so the prefix loses its hyphens

    Example:
    >>> get_storage_account_name(DeploymentIdentity("shiftbase-sync", 4821))
    "shiftbasesyncstor4821"
    """
    name = f"{identity.prefix.replace('-', '')}{STORAGE_ACCOUNT_TOKEN}{identity.suffix}".lower()
    if not STORAGE_ACCOUNT_MIN_LENGTH <= len(name) <= STORAGE_ACCOUNT_MAX_LENGTH:
        raise NamingError(
            f"{STORAGE_ACCOUNT_KIND} name '{name}' must be between "
            f"{STORAGE_ACCOUNT_MIN_LENGTH} and {STORAGE_ACCOUNT_MAX_LENGTH} characters, got {len(name)}"
        )
    if not fullmatch(STORAGE_ACCOUNT_NAME_PATTERN, name):
        raise NamingError(f"{STORAGE_ACCOUNT_KIND} name '{name}' may only contain lowercase letters and digits")
    return name


def get_resource_names(identity: DeploymentIdentity) -> ResourceNames:
    """Derive and validate every resource name of the run up front"""
    return ResourceNames(
        resource_group=get_resource_group_name(identity),
        storage_account=get_storage_account_name(identity),
        app_insights=get_app_insights_name(identity),
        hosting_plan=get_hosting_plan_name(identity),
        function_app=get_function_app_name(identity),
    )


def get_resource_group_id(subscription_id: str, resource_group: str) -> str:
    return f"/subscriptions/{subscription_id}/resourceGroups/{resource_group}"


def get_app_insights_id(subscription_id: str, resource_group: str, name: str) -> str:
    return get_resource_group_id(subscription_id, resource_group) + "/providers/microsoft.insights/components/" + name


def get_hosting_plan_id(subscription_id: str, resource_group: str, name: str) -> str:
    return get_resource_group_id(subscription_id, resource_group) + "/providers/Microsoft.Web/serverfarms/" + name
