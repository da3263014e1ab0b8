# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

# stdlib
from asyncio import gather
from contextlib import AbstractAsyncContextManager
from logging import getLogger
from types import TracebackType
from typing import Final, Self

# 3p
from azure.core.credentials_async import AsyncTokenCredential
from azure.core.exceptions import AzureError
from azure.mgmt.applicationinsights.v2020_02_02.aio import ApplicationInsightsManagementClient
from azure.mgmt.applicationinsights.v2020_02_02.models import ApplicationInsightsComponent
from azure.mgmt.resource.resources.v2021_01_01.aio import ResourceManagementClient
from azure.mgmt.resource.resources.v2021_01_01.models import ResourceGroup
from azure.mgmt.storage.aio import StorageManagementClient
from azure.mgmt.storage.models import Sku, StorageAccount, StorageAccountCreateParameters, StorageAccountKey
from azure.mgmt.web.aio import WebSiteManagementClient
from azure.mgmt.web.models import (
    AppServicePlan,
    ManagedServiceIdentity,
    ManagedServiceIdentityType,
    NameValuePair,
    Site,
    SiteConfig,
    SkuDescription,
    StringDictionary,
)

# project
from config.env import (
    FUNCTIONS_EXTENSION_VERSION_SETTING,
    FUNCTIONS_WORKER_RUNTIME_SETTING,
    STORAGE_CONNECTION_SETTING,
)
from provisioning.common import (
    APP_INSIGHTS_KIND,
    FUNCTION_APP_KIND,
    HOSTING_PLAN_KIND,
    RESOURCE_GROUP_KIND,
    STORAGE_ACCOUNT_KIND,
    get_app_insights_id,
    get_hosting_plan_id,
)

STORAGE_SKU: Final = "Standard_LRS"
STORAGE_KIND: Final = "StorageV2"
APP_INSIGHTS_TYPE: Final = "web"
CONSUMPTION_PLAN_SKU: Final = SkuDescription(name="Y1", tier="Dynamic")
FUNCTION_APP_LINUX_KIND: Final = "functionapp,linux"
HOSTING_PLAN_FUNCTION_KIND: Final = "functionapp"
APP_INSIGHTS_LINK_TAG: Final = "hidden-link: /app-insights-resource-id"

log = getLogger(__name__)


class ResourceCreationError(Exception):
    def __init__(self, kind: str, name: str, reason: object) -> None:
        super().__init__(f"Failed to create {kind} {name}: {reason}")
        self.kind = kind
        self.name = name


class TelemetryKeyUnavailable(Exception):
    pass


class SettingsApplyError(Exception):
    pass


def get_linux_fx_version(runtime: str, runtime_version: str) -> str:
    return f"{runtime.upper()}|{runtime_version}"


class FunctionHostClient(AbstractAsyncContextManager["FunctionHostClient"]):
    """Creates the resources of one deployment, all in one resource group and region"""

    def __init__(
        self, credential: AsyncTokenCredential, subscription_id: str, resource_group: str, location: str
    ) -> None:
        self.subscription_id = subscription_id
        self.resource_group = resource_group
        self.location = location
        self.resource_client = ResourceManagementClient(credential, subscription_id)
        self.storage_client = StorageManagementClient(credential, subscription_id)
        self.app_insights_client = ApplicationInsightsManagementClient(credential, subscription_id)
        self.web_client = WebSiteManagementClient(credential, subscription_id)

    async def __aenter__(self) -> Self:
        await gather(
            self.resource_client.__aenter__(),
            self.storage_client.__aenter__(),
            self.app_insights_client.__aenter__(),
            self.web_client.__aenter__(),
        )
        return self

    async def __aexit__(
        self, exc_type: type[BaseException] | None, exc_val: BaseException | None, exc_tb: TracebackType | None
    ) -> None:
        await gather(
            self.resource_client.__aexit__(exc_type, exc_val, exc_tb),
            self.storage_client.__aexit__(exc_type, exc_val, exc_tb),
            self.app_insights_client.__aexit__(exc_type, exc_val, exc_tb),
            self.web_client.__aexit__(exc_type, exc_val, exc_tb),
        )

    async def create_resource_group(self) -> ResourceGroup:
        try:
            return await self.resource_client.resource_groups.create_or_update(
                self.resource_group, ResourceGroup(location=self.location)
            )
        except AzureError as e:
            raise ResourceCreationError(RESOURCE_GROUP_KIND, self.resource_group, e) from e

    async def create_storage_account(self, storage_account_name: str) -> StorageAccount:
        try:
            poller = await self.storage_client.storage_accounts.begin_create(
                self.resource_group,
                storage_account_name,
                StorageAccountCreateParameters(
                    sku=Sku(name=STORAGE_SKU),
                    kind=STORAGE_KIND,
                    location=self.location,
                    enable_https_traffic_only=True,
                ),
            )
            return await poller.result()
        except AzureError as e:
            raise ResourceCreationError(STORAGE_ACCOUNT_KIND, storage_account_name, e) from e

    async def get_storage_connection_string(self, storage_account_name: str) -> str:
        try:
            keys_result = await self.storage_client.storage_accounts.list_keys(
                self.resource_group, storage_account_name
            )
        except AzureError as e:
            raise ResourceCreationError(STORAGE_ACCOUNT_KIND, storage_account_name, e) from e
        keys: list[StorageAccountKey] = keys_result.keys or []
        if len(keys) == 0:
            raise ResourceCreationError(STORAGE_ACCOUNT_KIND, storage_account_name, "no keys found for storage account")
        key: str = keys[0].value  # type: ignore
        return (
            "DefaultEndpointsProtocol=https;AccountName="
            + storage_account_name
            + ";AccountKey="
            + key
            + ";EndpointSuffix=core.windows.net"
        )

    async def create_app_insights(self, app_insights_name: str) -> ApplicationInsightsComponent:
        try:
            return await self.app_insights_client.components.create_or_update(
                self.resource_group,
                app_insights_name,
                ApplicationInsightsComponent(
                    location=self.location,
                    kind=APP_INSIGHTS_TYPE,
                    application_type=APP_INSIGHTS_TYPE,
                ),
            )
        except AzureError as e:
            raise ResourceCreationError(APP_INSIGHTS_KIND, app_insights_name, e) from e

    async def get_instrumentation_key(self, app_insights_name: str) -> str | None:
        """Read the component back, returns None if it has no key (yet)"""
        try:
            component = await self.app_insights_client.components.get(self.resource_group, app_insights_name)
        except AzureError as e:
            raise TelemetryKeyUnavailable(f"Failed to read the instrumentation key of {app_insights_name}: {e}") from e
        return component.instrumentation_key or None

    async def create_hosting_plan(self, hosting_plan_name: str) -> AppServicePlan:
        try:
            poller = await self.web_client.app_service_plans.begin_create_or_update(
                self.resource_group,
                hosting_plan_name,
                AppServicePlan(
                    location=self.location,
                    kind=HOSTING_PLAN_FUNCTION_KIND,
                    reserved=True,  # linux
                    sku=CONSUMPTION_PLAN_SKU,
                ),
            )
            return await poller.result()
        except AzureError as e:
            raise ResourceCreationError(HOSTING_PLAN_KIND, hosting_plan_name, e) from e

    async def create_function_app(
        self,
        function_app_name: str,
        hosting_plan_name: str,
        app_insights_name: str,
        storage_connection_string: str,
        runtime: str,
        runtime_version: str,
        extension_version: str,
    ) -> Site:
        """Creates the function app on the consumption plan with a system assigned identity.
        It is linked to application insights by resource ID, the key is only ever passed through app settings"""
        app_insights_id = get_app_insights_id(self.subscription_id, self.resource_group, app_insights_name)
        try:
            poller = await self.web_client.web_apps.begin_create_or_update(
                self.resource_group,
                function_app_name,
                Site(
                    location=self.location,
                    kind=FUNCTION_APP_LINUX_KIND,
                    server_farm_id=get_hosting_plan_id(self.subscription_id, self.resource_group, hosting_plan_name),
                    reserved=True,
                    https_only=True,
                    identity=ManagedServiceIdentity(type=ManagedServiceIdentityType.SYSTEM_ASSIGNED),
                    tags={APP_INSIGHTS_LINK_TAG: app_insights_id},
                    site_config=SiteConfig(
                        linux_fx_version=get_linux_fx_version(runtime, runtime_version),
                        app_settings=[
                            NameValuePair(name=STORAGE_CONNECTION_SETTING, value=storage_connection_string),
                            NameValuePair(name=FUNCTIONS_EXTENSION_VERSION_SETTING, value=extension_version),
                            NameValuePair(name=FUNCTIONS_WORKER_RUNTIME_SETTING, value=runtime),
                        ],
                    ),
                ),
            )
            return await poller.result()
        except AzureError as e:
            raise ResourceCreationError(FUNCTION_APP_KIND, function_app_name, e) from e

    async def update_app_settings(self, function_app_name: str, settings: dict[str, str]) -> None:
        """Merge `settings` into the function app's current application settings"""
        try:
            app_settings = await self.web_client.web_apps.list_application_settings(
                self.resource_group, function_app_name
            )
            properties = dict(app_settings.properties or {})
            properties.update(settings)
            await self.web_client.web_apps.update_application_settings(
                self.resource_group, function_app_name, StringDictionary(properties=properties)
            )
        except AzureError as e:
            raise SettingsApplyError(f"Failed to update application settings of {function_app_name}: {e}") from e
