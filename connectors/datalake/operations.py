# connectors/datalake/operations.py
from __future__ import annotations
from typing import Any, Collection, Optional, Type
from pydantic import BaseModel
from common.models import (
    AddDataLakeStoreParameters,
    AddStorageAccountParameters,
    CreateAccountParameters,
    FirewallRuleParameters,
    NameAvailabilityParameters,
    QueryOptions,
    Resource,
    ResourceIdentity,
    UpdateAccountParameters,
    UpdateFirewallRuleParameters,
    UpdateStorageAccountParameters,
)
from common.validators import validate_body
from connectors.datalake.blocking import Blocking
from connectors.datalake.client import ServiceClient
from connectors.datalake.decode import decode_body, decode_page, to_fault
from connectors.datalake.lro import wait_for_completion
from connectors.datalake.paginate import Pager


# ---- Resource paths (relative to the ARM base URL) ----
PROVIDER = "providers/Microsoft.DataLakeAnalytics"
ACCOUNTS = "subscriptions/{subscription_id}/" + PROVIDER + "/accounts"
ACCOUNTS_BY_RG = "subscriptions/{subscription_id}/resourceGroups/{resource_group_name}/" + PROVIDER + "/accounts"
ACCOUNT = ACCOUNTS_BY_RG + "/{account_name}"
CHECK_NAME = "subscriptions/{subscription_id}/" + PROVIDER + "/locations/{location}/checkNameAvailability"
STORAGE_ACCOUNTS = ACCOUNT + "/storageAccounts"
STORAGE_ACCOUNT = STORAGE_ACCOUNTS + "/{child_name}"
CONTAINERS = STORAGE_ACCOUNT + "/containers"
CONTAINER = CONTAINERS + "/{grandchild_name}"
SAS_TOKENS = CONTAINER + "/listSasTokens"
FIREWALL_RULES = ACCOUNT + "/firewallRules"
FIREWALL_RULE = FIREWALL_RULES + "/{child_name}"
STORE_ACCOUNTS = ACCOUNT + "/dataLakeStoreAccounts"
STORE_ACCOUNT = STORE_ACCOUNTS + "/{child_name}"

ACCEPTED = (200, 201, 202)


class _Operations:
    item_model: Type[Any] = Resource

    def __init__(self, client: ServiceClient):
        self.client = client

    def _scope(self, identity: Optional[ResourceIdentity]) -> ResourceIdentity:
        identity = identity or ResourceIdentity()
        if identity.subscription_id is None and self.client.subscription_id:
            identity = identity.model_copy(update={"subscription_id": self.client.subscription_id})
        return identity

    def _pager(self, template: str, identity: Optional[ResourceIdentity],
               query: Optional[QueryOptions] = None,
               method: str = "GET",
               success: Collection[int] = (200,)) -> Pager:
        # validated now, before any request is made
        path = self.client.build_path(template, self._scope(identity), query)
        params = query.to_params() if query else None
        client, model = self.client, self.item_model

        async def first():
            return decode_page(await client.send(method, path, params=params), model, success)

        async def follow(token: str):
            return decode_page(await client.fetch_next(token), model, success)

        return Pager(first, follow)

    async def _call(self, method: str, template: str, identity: Optional[ResourceIdentity],
                    body: Optional[BaseModel] = None,
                    success: Collection[int] = (200,),
                    model: Optional[Type[BaseModel]] = Resource,
                    **extra: Optional[str]) -> Any:
        path = self.client.build_path(template, self._scope(identity), **extra)
        payload = body.to_body() if body is not None else None  # type: ignore[attr-defined]
        r = await self.client.send(method, path, json=payload)
        return decode_body(r, model, success)

    async def _long_running(self, method: str, template: str, identity: ResourceIdentity,
                            body: Optional[BaseModel] = None,
                            success: Collection[int] = ACCEPTED,
                            model: Optional[Type[BaseModel]] = Resource) -> Any:
        """Send, then poll to completion. PUT/PATCH re-read the resource at the end."""
        path = self.client.build_path(template, self._scope(identity))
        payload = body.to_body() if body is not None else None  # type: ignore[attr-defined]
        r = await self.client.send(method, path, json=payload)
        if r.status_code not in success:
            raise to_fault(r)
        final = await wait_for_completion(self.client, r, resource_path=path if method in ("PUT", "PATCH") else None)
        if method == "DELETE" or final is None:
            return None
        return decode_body(final, model, (200, 201, 204))


class AccountsOperations(_Operations):

    def list(self, identity: Optional[ResourceIdentity] = None, query: Optional[QueryOptions] = None) -> Pager:
        """Every account in the subscription."""
        return self._pager(ACCOUNTS, identity, query)

    def list_by_resource_group(self, identity: ResourceIdentity, query: Optional[QueryOptions] = None) -> Pager:
        return self._pager(ACCOUNTS_BY_RG, identity, query)

    async def get(self, identity: ResourceIdentity) -> Optional[Resource]:
        return await self._call("GET", ACCOUNT, identity)

    async def begin_create(self, identity: ResourceIdentity, parameters: Any) -> Optional[Resource]:
        """Returns as soon as the service accepts the request (200/201)."""
        body = validate_body(CreateAccountParameters, parameters)
        return await self._call("PUT", ACCOUNT, identity, body=body, success=(200, 201))

    async def create(self, identity: ResourceIdentity, parameters: Any) -> Optional[Resource]:
        """Create and wait until provisioning finishes."""
        body = validate_body(CreateAccountParameters, parameters)
        return await self._long_running("PUT", ACCOUNT, identity, body=body, success=(200, 201))

    async def begin_update(self, identity: ResourceIdentity, parameters: Any = None) -> Optional[Resource]:
        body = validate_body(UpdateAccountParameters, parameters if parameters is not None else {})
        return await self._call("PATCH", ACCOUNT, identity, body=body, success=ACCEPTED)

    async def update(self, identity: ResourceIdentity, parameters: Any = None) -> Optional[Resource]:
        body = validate_body(UpdateAccountParameters, parameters if parameters is not None else {})
        return await self._long_running("PATCH", ACCOUNT, identity, body=body)

    async def begin_delete(self, identity: ResourceIdentity) -> None:
        await self._call("DELETE", ACCOUNT, identity, success=(200, 202, 204), model=None)

    async def delete(self, identity: ResourceIdentity) -> None:
        await self._long_running("DELETE", ACCOUNT, identity, success=(200, 202, 204))

    async def check_name_availability(self, location: str, parameters: Any,
                                      identity: Optional[ResourceIdentity] = None) -> Any:
        """Raw availability document, e.g. {"nameAvailable": false, "reason": ..., "message": ...}."""
        body = validate_body(NameAvailabilityParameters, parameters)
        return await self._call("POST", CHECK_NAME, identity, body=body, model=None, location=location)


class StorageAccountsOperations(_Operations):
    """Azure Storage accounts linked to an account. identity.child_name is the storage account."""

    def list_by_account(self, identity: ResourceIdentity, query: Optional[QueryOptions] = None) -> Pager:
        return self._pager(STORAGE_ACCOUNTS, identity, query)

    async def add(self, identity: ResourceIdentity, parameters: Any) -> None:
        body = validate_body(AddStorageAccountParameters, parameters)
        await self._call("PUT", STORAGE_ACCOUNT, identity, body=body, model=None)

    async def get(self, identity: ResourceIdentity) -> Optional[Resource]:
        return await self._call("GET", STORAGE_ACCOUNT, identity)

    async def update(self, identity: ResourceIdentity, parameters: Any = None) -> None:
        body = validate_body(UpdateStorageAccountParameters, parameters if parameters is not None else {})
        await self._call("PATCH", STORAGE_ACCOUNT, identity, body=body, model=None)

    async def delete(self, identity: ResourceIdentity) -> None:
        await self._call("DELETE", STORAGE_ACCOUNT, identity, model=None)

    def list_containers(self, identity: ResourceIdentity) -> Pager:
        return self._pager(CONTAINERS, identity)

    async def get_container(self, identity: ResourceIdentity) -> Optional[Resource]:
        """identity.grandchild_name is the container."""
        return await self._call("GET", CONTAINER, identity)

    def list_sas_tokens(self, identity: ResourceIdentity) -> Pager:
        # first page is a POST, continuation pages are plain GETs
        return self._pager(SAS_TOKENS, identity, method="POST")


class FirewallRulesOperations(_Operations):
    """identity.child_name is the firewall rule."""

    def list_by_account(self, identity: ResourceIdentity) -> Pager:
        return self._pager(FIREWALL_RULES, identity)

    async def create_or_update(self, identity: ResourceIdentity, parameters: Any) -> Optional[Resource]:
        body = validate_body(FirewallRuleParameters, parameters)
        return await self._call("PUT", FIREWALL_RULE, identity, body=body)

    async def get(self, identity: ResourceIdentity) -> Optional[Resource]:
        return await self._call("GET", FIREWALL_RULE, identity)

    async def update(self, identity: ResourceIdentity, parameters: Any = None) -> Optional[Resource]:
        body = validate_body(UpdateFirewallRuleParameters, parameters if parameters is not None else {})
        return await self._call("PATCH", FIREWALL_RULE, identity, body=body)

    async def delete(self, identity: ResourceIdentity) -> None:
        await self._call("DELETE", FIREWALL_RULE, identity, success=(200, 204), model=None)


class DataLakeStoreAccountsOperations(_Operations):
    """Data Lake Store accounts linked to an account. identity.child_name is the store account."""

    def list_by_account(self, identity: ResourceIdentity, query: Optional[QueryOptions] = None) -> Pager:
        return self._pager(STORE_ACCOUNTS, identity, query)

    async def add(self, identity: ResourceIdentity, parameters: Any = None) -> None:
        body = validate_body(AddDataLakeStoreParameters, parameters if parameters is not None else {})
        await self._call("PUT", STORE_ACCOUNT, identity, body=body, model=None)

    async def get(self, identity: ResourceIdentity) -> Optional[Resource]:
        return await self._call("GET", STORE_ACCOUNT, identity)

    async def delete(self, identity: ResourceIdentity) -> None:
        await self._call("DELETE", STORE_ACCOUNT, identity, model=None)


class DataLakeClient:
    """Entry point: one ServiceClient shared by every resource collection."""

    def __init__(self, service: Optional[ServiceClient] = None):
        self.service = service or ServiceClient.from_settings()
        self.accounts = AccountsOperations(self.service)
        self.storage_accounts = StorageAccountsOperations(self.service)
        self.firewall_rules = FirewallRulesOperations(self.service)
        self.data_lake_store_accounts = DataLakeStoreAccountsOperations(self.service)

    def blocking(self) -> "BlockingDataLakeClient":
        return BlockingDataLakeClient(self)


class BlockingDataLakeClient:
    """Synchronous twin of DataLakeClient; list calls return fully walked lists."""

    def __init__(self, client: DataLakeClient):
        self.accounts = Blocking(client.accounts)
        self.storage_accounts = Blocking(client.storage_accounts)
        self.firewall_rules = Blocking(client.firewall_rules)
        self.data_lake_store_accounts = Blocking(client.data_lake_store_accounts)
