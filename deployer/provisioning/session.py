# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.

# stdlib
from logging import getLogger
from typing import NamedTuple

# 3p
from azure.core.credentials_async import AsyncTokenCredential
from azure.core.exceptions import AzureError
from azure.mgmt.resource.subscriptions.v2021_01_01.aio import SubscriptionClient
from azure.mgmt.resource.subscriptions.v2021_01_01.models import Subscription, SubscriptionState

ARM_SCOPE = "https://management.azure.com/.default"

log = getLogger(__name__)


class AuthenticationError(Exception):
    pass


class AccountInfo(NamedTuple):
    subscription_id: str
    display_name: str
    tenant_id: str


class SessionGuard:
    """Makes sure we are logged in to Azure, and on the intended subscription, before anything is created"""

    def __init__(
        self, credential: AsyncTokenCredential, subscription_id: str | None = None, tenant_id: str | None = None
    ) -> None:
        self.credential = credential
        self.subscription_id = subscription_id
        self.tenant_id = tenant_id

    async def ensure_session(self) -> AccountInfo:
        log.info("Verifying Azure login...")
        try:
            await self.credential.get_token(ARM_SCOPE)
        except AzureError as e:
            raise AuthenticationError(f"Azure login failed, run 'az login' first: {e}") from e

        try:
            async with SubscriptionClient(self.credential) as subscription_client:
                subscription = await self.get_subscription(subscription_client)
        except AzureError as e:
            raise AuthenticationError(f"Failed to verify the active Azure account: {e}") from e

        account = self.check_subscription(subscription)
        log.info(
            "Using subscription %s (%s) in tenant %s", account.display_name, account.subscription_id, account.tenant_id
        )
        return account

    async def get_subscription(self, subscription_client: SubscriptionClient) -> Subscription:
        if self.subscription_id:
            return await subscription_client.subscriptions.get(self.subscription_id)
        async for subscription in subscription_client.subscriptions.list():
            if subscription.state == SubscriptionState.ENABLED:
                return subscription
        raise AuthenticationError("No enabled subscription found for the current login")

    def check_subscription(self, subscription: Subscription) -> AccountInfo:
        if subscription.state != SubscriptionState.ENABLED:
            raise AuthenticationError(
                f"Subscription {subscription.subscription_id} is not enabled (state: {subscription.state})"
            )
        if self.tenant_id and (subscription.tenant_id or "").lower() != self.tenant_id.lower():
            raise AuthenticationError(
                f"Subscription {subscription.subscription_id} belongs to tenant {subscription.tenant_id}, "
                f"expected {self.tenant_id}"
            )
        return AccountInfo(
            subscription_id=str(subscription.subscription_id),
            display_name=str(subscription.display_name),
            tenant_id=str(subscription.tenant_id),
        )
