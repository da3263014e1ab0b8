# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

# stdlib
from typing import cast
from unittest.mock import AsyncMock, Mock

# 3p
from azure.core.exceptions import HttpResponseError, ResourceNotFoundError

# project
from provisioning.app_settings import compose_app_settings, settings_to_properties
from provisioning.client.function_host_client import (
    APP_INSIGHTS_LINK_TAG,
    FunctionHostClient,
    ResourceCreationError,
    SettingsApplyError,
    TelemetryKeyUnavailable,
    get_linux_fx_version,
)
from provisioning.tests.common import (
    SUB_ID1,
    WEST_EUROPE,
    AsyncMockClient,
    AsyncTestCase,
    AzureModelMatcher,
    PartialAzureModelMatcher,
    make_config,
    mock,
)

RESOURCE_GROUP_NAME = "shiftbase-sync-rg-4821"
STORAGE_ACCOUNT_NAME = "shiftbasesyncstor4821"
APP_INSIGHTS_NAME = "appi-shiftbase-sync-func-4821"
HOSTING_PLAN_NAME = "shiftbase-sync-plan-4821"
FUNCTION_APP_NAME = "shiftbase-sync-func-4821"
CONNECTION_STRING = (
    "DefaultEndpointsProtocol=https;AccountName=shiftbasesyncstor4821;AccountKey=key;EndpointSuffix=core.windows.net"
)


class MockedFunctionHostClient(FunctionHostClient):
    """Used for typing since we know the underlying clients will be mocks"""

    resource_client: AsyncMock
    storage_client: AsyncMock
    app_insights_client: AsyncMock
    web_client: AsyncMock


class TestFunctionHostClient(AsyncTestCase):
    async def asyncSetUp(self) -> None:
        self.client: MockedFunctionHostClient = cast(
            MockedFunctionHostClient,
            FunctionHostClient(
                credential=AsyncMock(),
                subscription_id=SUB_ID1,
                resource_group=RESOURCE_GROUP_NAME,
                location=WEST_EUROPE,
            ),
        )
        await self.client.__aexit__(None, None, None)
        self.client.resource_client = AsyncMockClient()
        self.client.storage_client = AsyncMockClient()
        self.client.app_insights_client = AsyncMockClient()
        self.client.web_client = AsyncMockClient()
        self.client.storage_client.storage_accounts.list_keys = AsyncMock(return_value=Mock(keys=[Mock(value="key")]))

    async def test_enter_and_exit_all_clients(self):
        async with self.client:
            pass
        for client in [
            self.client.resource_client,
            self.client.storage_client,
            self.client.app_insights_client,
            self.client.web_client,
        ]:
            client.__aenter__.assert_awaited_once()
            client.__aexit__.assert_awaited_once()

    async def test_create_resource_group(self):
        async with self.client:
            await self.client.create_resource_group()

        self.client.resource_client.resource_groups.create_or_update.assert_awaited_once_with(
            RESOURCE_GROUP_NAME, AzureModelMatcher({"location": WEST_EUROPE})
        )

    async def test_create_resource_group_error(self):
        self.client.resource_client.resource_groups.create_or_update.side_effect = HttpResponseError("quota")
        with self.assertRaises(ResourceCreationError) as ctx:
            async with self.client:
                await self.client.create_resource_group()
        self.assertEqual(ctx.exception.kind, "resource group")
        self.assertEqual(ctx.exception.name, RESOURCE_GROUP_NAME)
        self.assertIn("Failed to create resource group shiftbase-sync-rg-4821", str(ctx.exception))

    async def test_create_storage_account(self):
        async with self.client:
            await self.client.create_storage_account(STORAGE_ACCOUNT_NAME)

        storage_create: AsyncMock = self.client.storage_client.storage_accounts.begin_create
        storage_create.assert_awaited_once_with(
            RESOURCE_GROUP_NAME,
            STORAGE_ACCOUNT_NAME,
            PartialAzureModelMatcher(
                {
                    "sku": {"name": "Standard_LRS"},
                    "kind": "StorageV2",
                    "location": WEST_EUROPE,
                    "enable_https_traffic_only": True,
                }
            ),
        )
        (await storage_create()).result.assert_awaited_once_with()

    async def test_create_storage_account_error(self):
        self.client.storage_client.storage_accounts.begin_create.side_effect = HttpResponseError("name taken")
        with self.assertRaises(ResourceCreationError) as ctx:
            async with self.client:
                await self.client.create_storage_account(STORAGE_ACCOUNT_NAME)
        self.assertEqual(ctx.exception.kind, "storage account")

    async def test_get_storage_connection_string(self):
        async with self.client:
            connection_string = await self.client.get_storage_connection_string(STORAGE_ACCOUNT_NAME)

        self.assertEqual(connection_string, CONNECTION_STRING)
        self.client.storage_client.storage_accounts.list_keys.assert_awaited_once_with(
            RESOURCE_GROUP_NAME, STORAGE_ACCOUNT_NAME
        )

    async def test_get_storage_connection_string_no_keys(self):
        self.client.storage_client.storage_accounts.list_keys = AsyncMock(return_value=Mock(keys=[]))
        with self.assertRaises(ResourceCreationError) as ctx:
            async with self.client:
                await self.client.get_storage_connection_string(STORAGE_ACCOUNT_NAME)
        self.assertIn("no keys found", str(ctx.exception))

    async def test_create_app_insights(self):
        async with self.client:
            await self.client.create_app_insights(APP_INSIGHTS_NAME)

        self.client.app_insights_client.components.create_or_update.assert_awaited_once_with(
            RESOURCE_GROUP_NAME,
            APP_INSIGHTS_NAME,
            PartialAzureModelMatcher({"location": WEST_EUROPE, "kind": "web", "application_type": "web"}),
        )

    async def test_get_instrumentation_key(self):
        self.client.app_insights_client.components.get = AsyncMock(return_value=mock(instrumentation_key="abc-123"))
        async with self.client:
            key = await self.client.get_instrumentation_key(APP_INSIGHTS_NAME)
        self.assertEqual(key, "abc-123")
        self.client.app_insights_client.components.get.assert_awaited_once_with(RESOURCE_GROUP_NAME, APP_INSIGHTS_NAME)

    async def test_get_instrumentation_key_empty(self):
        self.client.app_insights_client.components.get = AsyncMock(return_value=mock(instrumentation_key=""))
        async with self.client:
            self.assertIsNone(await self.client.get_instrumentation_key(APP_INSIGHTS_NAME))

    async def test_get_instrumentation_key_error(self):
        self.client.app_insights_client.components.get = AsyncMock(side_effect=ResourceNotFoundError("gone"))
        with self.assertRaises(TelemetryKeyUnavailable):
            async with self.client:
                await self.client.get_instrumentation_key(APP_INSIGHTS_NAME)

    async def test_create_hosting_plan(self):
        async with self.client:
            await self.client.create_hosting_plan(HOSTING_PLAN_NAME)

        plan_create: AsyncMock = self.client.web_client.app_service_plans.begin_create_or_update
        plan_create.assert_awaited_once_with(
            RESOURCE_GROUP_NAME,
            HOSTING_PLAN_NAME,
            PartialAzureModelMatcher(
                {
                    "location": WEST_EUROPE,
                    "kind": "functionapp",
                    "reserved": True,
                    "sku": {"name": "Y1", "tier": "Dynamic"},
                }
            ),
        )
        (await plan_create()).result.assert_awaited_once_with()

    async def test_create_function_app(self):
        async with self.client:
            await self.client.create_function_app(
                FUNCTION_APP_NAME, HOSTING_PLAN_NAME, APP_INSIGHTS_NAME, CONNECTION_STRING, "python", "3.11", "~4"
            )

        app_create: AsyncMock = self.client.web_client.web_apps.begin_create_or_update
        app_create.assert_awaited_once_with(
            RESOURCE_GROUP_NAME,
            FUNCTION_APP_NAME,
            PartialAzureModelMatcher(
                {
                    "location": WEST_EUROPE,
                    "kind": "functionapp,linux",
                    "server_farm_id": f"/subscriptions/{SUB_ID1}/resourceGroups/{RESOURCE_GROUP_NAME}"
                    f"/providers/Microsoft.Web/serverfarms/{HOSTING_PLAN_NAME}",
                    "reserved": True,
                    "https_only": True,
                    "identity": {"type": "SystemAssigned"},
                    "tags": {
                        APP_INSIGHTS_LINK_TAG: f"/subscriptions/{SUB_ID1}/resourceGroups/{RESOURCE_GROUP_NAME}"
                        f"/providers/microsoft.insights/components/{APP_INSIGHTS_NAME}"
                    },
                    "site_config": {
                        "linux_fx_version": "PYTHON|3.11",
                        "app_settings": [
                            {"name": "AzureWebJobsStorage", "value": CONNECTION_STRING},
                            {"name": "FUNCTIONS_EXTENSION_VERSION", "value": "~4"},
                            {"name": "FUNCTIONS_WORKER_RUNTIME", "value": "python"},
                        ],
                    },
                }
            ),
        )
        (await app_create()).result.assert_awaited_once_with()

    async def test_function_app_is_never_given_the_instrumentation_key(self):
        async with self.client:
            await self.client.create_function_app(
                FUNCTION_APP_NAME, HOSTING_PLAN_NAME, APP_INSIGHTS_NAME, CONNECTION_STRING, "python", "3.11", "~4"
            )
        site = self.client.web_client.web_apps.begin_create_or_update.await_args.args[2]
        self.assertNotIn("APPLICATIONINSIGHTS_CONNECTION_STRING", str(site.as_dict()))
        self.assertNotIn("InstrumentationKey", str(site.as_dict()))

    async def test_create_function_app_error(self):
        self.client.web_client.web_apps.begin_create_or_update.side_effect = HttpResponseError("plan missing")
        with self.assertRaises(ResourceCreationError) as ctx:
            async with self.client:
                await self.client.create_function_app(
                    FUNCTION_APP_NAME, HOSTING_PLAN_NAME, APP_INSIGHTS_NAME, CONNECTION_STRING, "python", "3.11", "~4"
                )
        self.assertEqual(ctx.exception.kind, "function app")

    async def test_update_app_settings_merges_existing(self):
        self.client.web_client.web_apps.list_application_settings = AsyncMock(
            return_value=mock(properties={"AzureWebJobsStorage": CONNECTION_STRING, "FUNCTIONS_EXTENSION_VERSION": "~3"})
        )
        settings = settings_to_properties(compose_app_settings(make_config(), "abc-123"))

        async with self.client:
            await self.client.update_app_settings(FUNCTION_APP_NAME, settings)

        self.client.web_client.web_apps.update_application_settings.assert_awaited_once_with(
            RESOURCE_GROUP_NAME,
            FUNCTION_APP_NAME,
            AzureModelMatcher({"properties": {"AzureWebJobsStorage": CONNECTION_STRING, **settings}}),
        )

    async def test_update_app_settings_without_existing(self):
        self.client.web_client.web_apps.list_application_settings = AsyncMock(return_value=mock(properties=None))

        async with self.client:
            await self.client.update_app_settings(FUNCTION_APP_NAME, {"A": "1"})

        self.client.web_client.web_apps.update_application_settings.assert_awaited_once_with(
            RESOURCE_GROUP_NAME, FUNCTION_APP_NAME, AzureModelMatcher({"properties": {"A": "1"}})
        )

    async def test_update_app_settings_error(self):
        self.client.web_client.web_apps.update_application_settings.side_effect = HttpResponseError("conflict")
        self.client.web_client.web_apps.list_application_settings = AsyncMock(return_value=mock(properties={}))
        with self.assertRaises(SettingsApplyError) as ctx:
            async with self.client:
                await self.client.update_app_settings(FUNCTION_APP_NAME, {"A": "1"})
        self.assertIn(FUNCTION_APP_NAME, str(ctx.exception))

    def test_get_linux_fx_version(self):
        self.assertEqual(get_linux_fx_version("python", "3.11"), "PYTHON|3.11")
