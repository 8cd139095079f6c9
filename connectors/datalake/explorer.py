# connectors/datalake/explorer.py
from __future__ import annotations
import logging
from typing import Any, List, Optional
from common.cache import ListCache
from common.models import QueryOptions, Resource, ResourceIdentity
from connectors.datalake.operations import DataLakeClient

log = logging.getLogger(__name__)


class AccountExplorer:
    """
    Browsing facade used by the gateway / tooling.
    Account lists are cached per subscription in the ListCache it is given
    (callers get copies, never the cached list itself);
    create/delete through the explorer invalidate that subscription's entry.
    """

    def __init__(self, client: DataLakeClient, cache: Optional[ListCache] = None):
        self.client = client
        self.cache = cache if cache is not None else ListCache()

    def _subscription(self, subscription_id: Optional[str]) -> Optional[str]:
        return subscription_id or self.client.service.subscription_id

    async def list_accounts(self, subscription_id: Optional[str] = None,
                            force_refresh: bool = False,
                            query: Optional[QueryOptions] = None) -> List[Resource]:
        sub = self._subscription(subscription_id)
        key = ("accounts", sub, query)
        if not force_refresh:
            hit = self.cache.get(key)
            if hit is not None:
                return list(hit)

        pager = self.client.accounts.list(ResourceIdentity(subscription_id=sub), query)
        accounts = await pager.collect()
        log.info("listed %d accounts for subscription=%s", len(accounts), sub)
        self.cache.put(key, list(accounts))
        return accounts

    async def firewall_rules(self, identity: ResourceIdentity) -> List[Resource]:
        return await self.client.firewall_rules.list_by_account(identity).collect()

    async def storage_accounts(self, identity: ResourceIdentity) -> List[Resource]:
        return await self.client.storage_accounts.list_by_account(identity).collect()

    async def create_account(self, identity: ResourceIdentity, parameters: Any) -> Optional[Resource]:
        created = await self.client.accounts.create(identity, parameters)
        self.invalidate(identity.subscription_id)
        return created

    async def delete_account(self, identity: ResourceIdentity) -> None:
        await self.client.accounts.delete(identity)
        self.invalidate(identity.subscription_id)

    def invalidate(self, subscription_id: Optional[str] = None) -> int:
        """Drop cached account lists for one subscription (every query variant)."""
        sub = self._subscription(subscription_id)
        keys = [k for k in self.cache.keys() if isinstance(k, tuple) and k[:2] == ("accounts", sub)]
        return sum(self.cache.clear(k) for k in keys)
