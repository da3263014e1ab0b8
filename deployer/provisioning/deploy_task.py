# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

# stdlib
from collections.abc import Awaitable, Callable
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass, field
from enum import Enum
from logging import getLogger
from types import TracebackType
from typing import Final, NamedTuple, Self

# 3p
from azure.identity.aio import DefaultAzureCredential

# project
from config.deploy_config import DeployConfig
from provisioning.app_settings import AppSetting, compose_app_settings, secret_values, settings_to_properties
from provisioning.client.function_host_client import (
    FunctionHostClient,
    ResourceCreationError,
    SettingsApplyError,
    TelemetryKeyUnavailable,
)
from provisioning.common import (
    APP_INSIGHTS_KIND,
    FUNCTION_APP_KIND,
    HOSTING_PLAN_KIND,
    RESOURCE_GROUP_KIND,
    STORAGE_ACCOUNT_KIND,
    DeploymentIdentity,
    ProvisionedResource,
    ResourceNames,
    get_resource_names,
)
from provisioning.report import SECRETS_FILTER
from provisioning.session import AccountInfo, AuthenticationError, SessionGuard

DEPLOY_TASK_NAME = "deploy_task"

SESSION_STAGE: Final = "session"
TELEMETRY_KEY_STAGE: Final = "instrumentation key"
SETTINGS_STAGE: Final = "application settings"

EXIT_SUCCESS: Final = 0
EXIT_FAILURE: Final = 1

log = getLogger(__name__)


class StageStatus(Enum):
    OK = "ok"
    WARNING = "warning"
    FATAL = "fatal"


class StageResult(NamedTuple):
    stage: str
    status: StageStatus
    message: str


@dataclass
class DeploymentResult:
    identity: DeploymentIdentity
    names: ResourceNames
    location: str
    account: AccountInfo | None = None
    resources: list[ProvisionedResource] = field(default_factory=list)
    settings: list[AppSetting] = field(default_factory=list)
    stages: list[StageResult] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        return any(stage.status is StageStatus.FATAL for stage in self.stages)

    @property
    def warnings(self) -> list[StageResult]:
        return [stage for stage in self.stages if stage.status is StageStatus.WARNING]

    @property
    def reached_settings(self) -> bool:
        return any(stage.stage == SETTINGS_STAGE for stage in self.stages)

    @property
    def exit_code(self) -> int:
        return EXIT_FAILURE if self.failed else EXIT_SUCCESS


Stage = Callable[[FunctionHostClient], Awaitable[StageResult]]


class DeployTask(AbstractAsyncContextManager["DeployTask"]):
    """Provisions one function host and everything it depends on, strictly in order.

    Every stage returns a StageResult, the first FATAL one stops the run.
    Nothing that was already created is removed."""

    NAME = DEPLOY_TASK_NAME

    def __init__(self, config: DeployConfig, identity: DeploymentIdentity) -> None:
        self.config = config
        self.identity = identity
        self.names = get_resource_names(identity)
        self.credential = DefaultAzureCredential()
        self.log = log.getChild(self.__class__.__name__)
        self.result = DeploymentResult(identity, self.names, config.location)
        self.storage_connection_string = ""
        self.instrumentation_key: str | None = None

    async def __aenter__(self) -> Self:
        await self.credential.__aenter__()
        return self

    async def __aexit__(
        self, exc_type: type[BaseException] | None, exc_value: BaseException | None, traceback: TracebackType | None
    ) -> None:
        await self.credential.__aexit__(exc_type, exc_value, traceback)

    async def run(self) -> DeploymentResult:
        session = await self.verify_session()
        self.result.stages.append(session)
        if session.status is StageStatus.FATAL or self.result.account is None:
            return self.result

        stages: list[Stage] = [
            self.create_resource_group,
            self.create_storage_account,
            self.create_app_insights,
            self.read_instrumentation_key,
            self.create_hosting_plan,
            self.create_function_app,
            self.apply_settings,
        ]
        async with FunctionHostClient(
            self.credential, self.result.account.subscription_id, self.names.resource_group, self.config.location
        ) as client:
            for stage in stages:
                stage_result = await stage(client)
                self.result.stages.append(stage_result)
                if stage_result.status is StageStatus.FATAL:
                    self.log.error("Deployment aborted at %s, created resources are left in place", stage_result.stage)
                    break
        return self.result

    async def verify_session(self) -> StageResult:
        guard = SessionGuard(self.credential, self.config.subscription_id, self.config.tenant_id)
        try:
            account = await guard.ensure_session()
        except AuthenticationError as e:
            self.log.error("Authentication failed: %s", e)
            return StageResult(SESSION_STAGE, StageStatus.FATAL, str(e))
        self.result.account = account
        return StageResult(SESSION_STAGE, StageStatus.OK, f"Using subscription {account.subscription_id}")

    async def create_resource(
        self, kind: str, name: str, create: Callable[[], Awaitable[object]], depends_on: tuple[str, ...] = ()
    ) -> StageResult:
        self.log.info("Creating %s: %s...", kind, name)
        try:
            await create()
        except ResourceCreationError as e:
            self.log.error("%s", e)
            return StageResult(kind, StageStatus.FATAL, str(e))
        self.result.resources.append(ProvisionedResource(kind, name, self.config.location, depends_on))
        self.log.info("%s %s created successfully", kind.capitalize(), name)
        return StageResult(kind, StageStatus.OK, f"Created {kind} {name}")

    async def create_resource_group(self, client: FunctionHostClient) -> StageResult:
        return await self.create_resource(RESOURCE_GROUP_KIND, self.names.resource_group, client.create_resource_group)

    async def create_storage_account(self, client: FunctionHostClient) -> StageResult:
        name = self.names.storage_account

        async def _create() -> None:
            await client.create_storage_account(name)
            self.storage_connection_string = await client.get_storage_connection_string(name)
            SECRETS_FILTER.add(self.storage_connection_string)

        return await self.create_resource(STORAGE_ACCOUNT_KIND, name, _create, (self.names.resource_group,))

    async def create_app_insights(self, client: FunctionHostClient) -> StageResult:
        name = self.names.app_insights
        return await self.create_resource(
            APP_INSIGHTS_KIND, name, lambda: client.create_app_insights(name), (self.names.resource_group,)
        )

    async def read_instrumentation_key(self, client: FunctionHostClient) -> StageResult:
        """Telemetry is optional, so a missing key only warns"""
        name = self.names.app_insights
        self.log.info("Reading instrumentation key of %s...", name)
        try:
            key = await client.get_instrumentation_key(name)
        except TelemetryKeyUnavailable as e:
            self.log.warning("%s, continuing without telemetry", e)
            return StageResult(TELEMETRY_KEY_STAGE, StageStatus.WARNING, str(e))
        if not key:
            message = f"No instrumentation key found for {name}"
            self.log.warning("%s, continuing without telemetry", message)
            return StageResult(TELEMETRY_KEY_STAGE, StageStatus.WARNING, message)
        SECRETS_FILTER.add(key)
        self.instrumentation_key = key
        self.log.info("Instrumentation key of %s retrieved", name)
        return StageResult(TELEMETRY_KEY_STAGE, StageStatus.OK, f"Read instrumentation key of {name}")

    async def create_hosting_plan(self, client: FunctionHostClient) -> StageResult:
        name = self.names.hosting_plan
        return await self.create_resource(
            HOSTING_PLAN_KIND, name, lambda: client.create_hosting_plan(name), (self.names.resource_group,)
        )

    async def create_function_app(self, client: FunctionHostClient) -> StageResult:
        names = self.names
        return await self.create_resource(
            FUNCTION_APP_KIND,
            names.function_app,
            lambda: client.create_function_app(
                names.function_app,
                names.hosting_plan,
                names.app_insights,
                self.storage_connection_string,
                self.config.runtime,
                self.config.runtime_version,
                self.config.extension_version,
            ),
            (names.resource_group, names.hosting_plan, names.storage_account, names.app_insights),
        )

    async def apply_settings(self, client: FunctionHostClient) -> StageResult:
        name = self.names.function_app
        settings = compose_app_settings(self.config, self.instrumentation_key)
        SECRETS_FILTER.add(*secret_values(settings))
        self.result.settings = settings
        self.log.info("Configuring %s application settings on %s...", len(settings), name)
        try:
            await client.update_app_settings(name, settings_to_properties(settings))
        except SettingsApplyError as e:
            self.log.warning("%s, the function app was created but is not configured", e)
            return StageResult(SETTINGS_STAGE, StageStatus.WARNING, str(e))
        self.log.info("Application settings configured successfully")
        return StageResult(SETTINGS_STAGE, StageStatus.OK, f"Applied {len(settings)} settings to {name}")
