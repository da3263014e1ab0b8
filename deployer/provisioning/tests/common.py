# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

# stdlib
from collections.abc import AsyncIterable
from contextlib import suppress
from dataclasses import dataclass
from typing import Any, TypeVar
from unittest import IsolatedAsyncioTestCase
from unittest.mock import AsyncMock, MagicMock, Mock, patch

# project
from config.deploy_config import DeployConfig

T = TypeVar("T")

SUB_ID1 = "decc348e-ca9e-4925-b351-ae56b0d9f811"
TENANT_ID1 = "1b3c5f4e-8e0d-4c2a-9b8f-0e6a7d2c1f33"
WEST_EUROPE = "westeurope"


def make_config(**kwargs: Any) -> DeployConfig:
    """A deploy config with every required input filled in"""
    return DeployConfig(
        **{
            "api_url": "https://api.shiftbase.com/api",
            "api_key": "shiftbase-secret-key",
            "db_connection_string": "Server=tcp:db.example.net;Password=db-secret-password",
            "db_target_table": "dbo.Shifts",
            **kwargs,
        }
    )


class AsyncTestCase(IsolatedAsyncioTestCase):
    def patch_path(self, path: str, **kwargs: Any) -> MagicMock | AsyncMock:
        p = patch(path, **kwargs)
        self.addCleanup(p.stop)
        return p.start()


async def async_generator(*items: T) -> AsyncIterable[T]:
    for x in items:
        if isinstance(x, Exception):
            raise x
        yield x


def mock(**kwargs: Any) -> Mock:
    m = Mock()
    for k, v in kwargs.items():
        setattr(m, k, v)
    return m


def AsyncMockClient(**kwargs: Any) -> AsyncMock:
    """An AsyncMock with the context manager methods set up to use as a client"""
    m = AsyncMock(**kwargs)
    m.__aenter__.return_value = m
    m.__aexit__.return_value = None
    return m


@dataclass(frozen=True)
class AzureModelMatcher:
    expected: dict[str, Any]

    def __eq__(self, other: Any) -> bool:
        with suppress(Exception):
            return other.as_dict() == self.expected
        return False  # pragma: no cover


def _has_attributes(actual: Any, expected: Any) -> bool:
    if isinstance(expected, dict):
        if isinstance(actual, dict):
            return all(k in actual and _has_attributes(actual[k], v) for k, v in expected.items())
        return all(_has_attributes(getattr(actual, k), v) for k, v in expected.items())
    if isinstance(expected, list):
        return (
            isinstance(actual, list)
            and len(actual) == len(expected)
            and all(_has_attributes(a, e) for a, e in zip(actual, expected))
        )
    return actual == expected


@dataclass(frozen=True)
class PartialAzureModelMatcher:
    """Matches an azure model whose attributes contain `expected`, nested models included.
    Compares attributes rather than `as_dict()`, whose layout differs between SDK generations"""

    expected: dict[str, Any]

    def __eq__(self, other: Any) -> bool:
        with suppress(Exception):
            return _has_attributes(other, self.expected)
        return False  # pragma: no cover
