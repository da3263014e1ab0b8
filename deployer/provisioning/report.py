# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

# stdlib
from collections.abc import Iterable
from logging import Filter, Formatter, Handler, LogRecord, getLogger
from typing import TYPE_CHECKING, Final

# project
from provisioning.app_settings import AppSetting, secret_values

if TYPE_CHECKING:
    from provisioning.deploy_task import DeploymentResult

MASK: Final = "********"
SEPARATOR: Final = "=" * 60


def display_value(setting: AppSetting) -> str:
    return MASK if setting.secret else setting.value


def format_summary(result: "DeploymentResult") -> str:
    SECRETS_FILTER.add(*secret_values(result.settings))
    identity = result.identity
    lines = [
        SEPARATOR,
        "Deployment summary",
        SEPARATOR,
        f"Prefix: {identity.prefix}",
        f"Suffix: {identity.suffix}",
        f"Location: {result.location}",
    ]
    if result.account:
        lines.append(f"Subscription: {result.account.display_name} ({result.account.subscription_id})")
    lines += ["", "Resources:"]
    lines += [f"  {resource.kind}: {resource.name} ({resource.location})" for resource in result.resources]
    lines += ["", "Application settings:"]
    lines += [f"  {setting.name}={display_value(setting)}" for setting in result.settings]
    warnings = result.warnings
    if warnings:
        lines += ["", "Warnings:"]
        # warning messages carry raw azure error text
        lines += [f"  {stage.stage}: {SECRETS_FILTER.redact(stage.message)}" for stage in warnings]
    lines.append(SEPARATOR)
    return "\n".join(lines)


def print_summary(result: "DeploymentResult") -> None:
    print(format_summary(result))


class SecretRedactingFilter(Filter):
    """A logging filter that masks known secret values in every record it sees"""

    def __init__(self) -> None:
        super().__init__()
        self._secrets: set[str] = set()

    def add(self, *secrets: str) -> None:
        self._secrets.update(s for s in secrets if s)

    def redact(self, message: str) -> str:
        # longest first, a secret may contain a shorter one
        for secret in sorted(self._secrets, key=len, reverse=True):
            message = message.replace(secret, MASK)
        return message

    def filter(self, record: LogRecord) -> bool:
        if not self._secrets:
            return True
        message = record.getMessage()
        redacted = self.redact(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        if record.exc_info:
            record.exc_text = self.redact(record.exc_text or Formatter().formatException(record.exc_info))
        return True


SECRETS_FILTER = SecretRedactingFilter()


def install_secret_filter(handlers: Iterable[Handler] | None = None) -> SecretRedactingFilter:
    """Attach the shared redacting filter to the given handlers, or to the root logger's handlers"""
    for handler in getLogger().handlers if handlers is None else handlers:
        handler.addFilter(SECRETS_FILTER)
    return SECRETS_FILTER
