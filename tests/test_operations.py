import json

import httpx
import pytest

from common.errors import Fault, InvalidArgument, OperationFailed
from common.models import (
    CreateAccountParameters,
    DataLakeStoreRef,
    QueryOptions,
    Resource,
    ResourceIdentity,
)
from connectors.datalake import lro
from connectors.datalake.client import ServiceClient
from connectors.datalake.operations import DataLakeClient
from fakes import BASE, page

ACCOUNT = ResourceIdentity(subscription_id="sub-1", resource_group_name="rg-1", account_name="adla1")
ACCOUNT_PATH = "/subscriptions/sub-1/resourceGroups/rg-1/providers/Microsoft.DataLakeAnalytics/accounts/adla1"

CREATE = {
    "location": "eastus2",
    "default_data_lake_store_account": "store1",
    "data_lake_store_accounts": [{"name": "store1"}],
}


def _body(request: httpx.Request):
    return json.loads(request.content)


# ---------- query options ----------

@pytest.mark.asyncio
async def test_query_options_on_the_wire(client, arm):
    arm.queue(page([]))
    await client.accounts.list(query=QueryOptions(top=1, filter="name eq 'x'")).collect()
    params = arm.requests[0].url.params
    assert params["$top"] == "1"
    assert params["$filter"] == "name eq 'x'"
    for absent in ("$skip", "$select", "$orderby", "$count"):
        assert absent not in params
    assert params["api-version"] == "2016-11-01"


def test_query_options_render_every_field():
    q = QueryOptions(filter="f", top=5, skip=10, select="name", orderby="name desc", count=False)
    assert q.to_params() == {
        "$filter": "f", "$top": "5", "$skip": "10",
        "$select": "name", "$orderby": "name desc", "$count": "false",
    }
    assert QueryOptions().to_params() == {}


# ---------- client-side validation ----------

MISSING = [
    lambda c: c.accounts.list(ResourceIdentity(subscription_id=None)),
    lambda c: c.accounts.list_by_resource_group(ResourceIdentity(subscription_id="s")),
    lambda c: c.accounts.get(ResourceIdentity(subscription_id="s", resource_group_name="rg")),
    lambda c: c.accounts.delete(ResourceIdentity(resource_group_name="rg", account_name="  ")),
    lambda c: c.storage_accounts.list_by_account(ResourceIdentity(subscription_id="s", account_name="a")),
    lambda c: c.storage_accounts.get_container(ACCOUNT.with_child("st1")),
    lambda c: c.storage_accounts.list_sas_tokens(ACCOUNT.with_child("st1")),
    lambda c: c.firewall_rules.get(ACCOUNT),
    lambda c: c.data_lake_store_accounts.list_by_account(ResourceIdentity(account_name="a")),
    lambda c: c.data_lake_store_accounts.add(ACCOUNT),
]


@pytest.mark.asyncio
@pytest.mark.parametrize("call", MISSING)
async def test_missing_identity_fails_before_any_request(arm, call):
    # no default subscription, so a missing subscription_id really is missing
    c = DataLakeClient(ServiceClient(base_url=BASE, subscription_id="", api_version="v", transport=arm.transport))
    with pytest.raises(InvalidArgument):
        result = call(c)
        if hasattr(result, "__await__"):
            await result
    assert arm.requests == []


@pytest.mark.asyncio
async def test_negative_top_is_invalid(client, arm):
    with pytest.raises(InvalidArgument) as ei:
        client.accounts.list(query=QueryOptions(top=-1))
    assert "top must be >= 0" in ei.value.problems
    assert arm.requests == []


@pytest.mark.asyncio
async def test_all_problems_reported_together(client, arm):
    with pytest.raises(InvalidArgument) as ei:
        await client.firewall_rules.get(ResourceIdentity(subscription_id="s"))
    assert len(ei.value.problems) == 3


@pytest.mark.asyncio
async def test_missing_api_version_is_invalid(arm):
    c = DataLakeClient(ServiceClient(base_url=BASE, subscription_id="s", api_version="", transport=arm.transport))
    with pytest.raises(InvalidArgument):
        await c.accounts.get(ACCOUNT)
    assert arm.requests == []


@pytest.mark.asyncio
@pytest.mark.parametrize("params", [
    None,
    {"location": "eastus2"},
    {**CREATE, "default_data_lake_store_account": "other"},
    {**CREATE, "query_store_retention": 0},
    {**CREATE, "data_lake_store_accounts": []},
])
async def test_create_body_validated_before_request(client, arm, params):
    with pytest.raises(InvalidArgument):
        await client.accounts.begin_create(ACCOUNT, params)
    assert arm.requests == []


@pytest.mark.asyncio
async def test_firewall_range_validated(client, arm):
    with pytest.raises(InvalidArgument):
        await client.firewall_rules.create_or_update(
            ACCOUNT.with_child("r1"),
            {"start_ip_address": "10.0.0.9", "end_ip_address": "10.0.0.1"},
        )
    with pytest.raises(InvalidArgument):
        await client.firewall_rules.create_or_update(
            ACCOUNT.with_child("r1"),
            {"start_ip_address": "not-an-ip", "end_ip_address": "10.0.0.1"},
        )
    assert arm.requests == []


# ---------- headers / paths ----------

@pytest.mark.asyncio
async def test_every_call_carries_language_and_agent(client, arm):
    arm.queue(httpx.Response(200, json={"name": "adla1"}))
    res = await client.accounts.get(ACCOUNT)
    assert res.name == "adla1"
    req = arm.requests[0]
    assert req.url.path == ACCOUNT_PATH
    assert req.headers["Accept-Language"] == "en-US"
    assert req.headers["User-Agent"] == "datalake-hub-tests"
    assert req.headers["x-ms-client-request-id"]
    assert "Authorization" not in req.headers


@pytest.mark.asyncio
async def test_bearer_token_from_provider(arm):
    async def token():
        return "tok-123"

    c = DataLakeClient(ServiceClient(base_url=BASE, subscription_id="s", api_version="v",
                                     token_provider=token, transport=arm.transport))
    arm.queue(page([]))
    await c.accounts.list().collect()
    assert arm.requests[0].headers["Authorization"] == "Bearer tok-123"


@pytest.mark.asyncio
async def test_path_values_are_escaped(client, arm):
    arm.queue(httpx.Response(200, json={"name": "r 1"}))
    await client.firewall_rules.get(ACCOUNT.with_child("r 1/x"))
    assert b"/firewallRules/r%201%2Fx" in arm.requests[0].url.raw_path


@pytest.mark.asyncio
async def test_get_404_is_fault(client, arm):
    arm.queue(httpx.Response(404, json={"error": {"code": "ResourceNotFound"}}))
    with pytest.raises(Fault) as ei:
        await client.accounts.get(ACCOUNT)
    assert ei.value.status == 404
    assert ei.value.method == "GET"
    assert ei.value.body == {"error": {"code": "ResourceNotFound"}}


# ---------- mutations ----------

@pytest.mark.asyncio
async def test_begin_create_returns_on_accept(client, arm):
    arm.queue(httpx.Response(201, json={"name": "adla1", "properties": {"provisioningState": "Creating"}},
                             headers={"Azure-AsyncOperation": "https://arm.test/ops/1"}))
    params = CreateAccountParameters(
        location="eastus2",
        default_data_lake_store_account="store1",
        data_lake_store_accounts=[DataLakeStoreRef(name="store1", suffix="azuredatalakestore.net")],
        max_degree_of_parallelism=30,
    )
    res = await client.accounts.begin_create(ACCOUNT, params)
    assert res.properties == {"provisioningState": "Creating"}
    assert len(arm.requests) == 1
    req = arm.requests[0]
    assert req.method == "PUT"
    assert _body(req) == {
        "location": "eastus2",
        "properties": {
            "defaultDataLakeStoreAccount": "store1",
            "dataLakeStoreAccounts": [{"name": "store1", "properties": {"suffix": "azuredatalakestore.net"}}],
            "maxDegreeOfParallelism": 30,
        },
    }


@pytest.mark.asyncio
async def test_create_polls_async_operation_then_rereads(client, arm):
    arm.queue(
        httpx.Response(201, json={"name": "adla1"}, headers={"Azure-AsyncOperation": "https://arm.test/ops/1"}),
        httpx.Response(200, json={"status": "InProgress"}),
        httpx.Response(200, json={"status": "Succeeded"}),
        httpx.Response(200, json={"name": "adla1", "properties": {"provisioningState": "Succeeded"}}),
    )
    res = await client.accounts.create(ACCOUNT, CREATE)
    assert res.properties["provisioningState"] == "Succeeded"
    methods = [(r.method, r.url.path) for r in arm.requests]
    assert methods == [
        ("PUT", ACCOUNT_PATH),
        ("GET", "/ops/1"),
        ("GET", "/ops/1"),
        ("GET", ACCOUNT_PATH),
    ]
    assert "api-version" not in arm.requests[1].url.params
    assert arm.requests[3].url.params["api-version"] == "2016-11-01"


@pytest.mark.asyncio
async def test_create_failed_operation_raises(client, arm):
    arm.queue(
        httpx.Response(201, json={}, headers={"Azure-AsyncOperation": "https://arm.test/ops/2"}),
        httpx.Response(200, json={"status": "Failed", "error": {"code": "QuotaExceeded"}}),
    )
    with pytest.raises(OperationFailed) as ei:
        await client.accounts.create(ACCOUNT, CREATE)
    assert isinstance(ei.value, Fault)
    assert ei.value.state == "Failed"
    assert ei.value.body == {"code": "QuotaExceeded"}


@pytest.mark.asyncio
async def test_create_gives_up_after_max_polls(client, arm):
    arm.queue(httpx.Response(201, json={}, headers={"Azure-AsyncOperation": "https://arm.test/ops/3"}))
    arm.queue(*[httpx.Response(200, json={"status": "InProgress"}) for _ in range(5)])
    with pytest.raises(TimeoutError):
        await client.accounts.create(ACCOUNT, CREATE)
    assert len(arm.requests) == 6


@pytest.mark.asyncio
async def test_update_without_lro_headers_is_immediate(client, arm):
    arm.queue(httpx.Response(200, json={"name": "adla1", "tags": {"env": "dev"}}))
    res = await client.accounts.update(ACCOUNT, {"tags": {"env": "dev"}})
    assert res.tags == {"env": "dev"}
    assert arm.requests[0].method == "PATCH"
    assert _body(arm.requests[0]) == {"tags": {"env": "dev"}}


@pytest.mark.asyncio
async def test_delete_polls_location_until_done(client, arm):
    arm.queue(
        httpx.Response(202, headers={"Location": "https://arm.test/ops/9", "Retry-After": "0"}),
        httpx.Response(202, headers={"Retry-After": "0"}),
        httpx.Response(200),
    )
    assert await client.accounts.delete(ACCOUNT) is None
    assert [r.method for r in arm.requests] == ["DELETE", "GET", "GET"]


@pytest.mark.asyncio
async def test_begin_delete_does_not_poll(client, arm):
    arm.queue(httpx.Response(202, headers={"Location": "https://arm.test/ops/9"}))
    assert await client.accounts.begin_delete(ACCOUNT) is None
    assert len(arm.requests) == 1


@pytest.mark.asyncio
async def test_delete_rejected_is_fault(client, arm):
    arm.queue(httpx.Response(409, json={"error": "conflict"}))
    with pytest.raises(Fault) as ei:
        await client.accounts.delete(ACCOUNT)
    assert ei.value.status == 409


@pytest.mark.asyncio
async def test_check_name_availability(client, arm):
    arm.queue(httpx.Response(200, json={"nameAvailable": False, "reason": "AlreadyExists"}))
    res = await client.accounts.check_name_availability("eastus2", {"name": "adla1"})
    assert res["nameAvailable"] is False
    req = arm.requests[0]
    assert req.url.path.endswith("/locations/eastus2/checkNameAvailability")
    assert _body(req) == {"name": "adla1", "type": "Microsoft.DataLakeAnalytics/accounts"}


@pytest.mark.asyncio
async def test_check_name_availability_needs_location(client, arm):
    with pytest.raises(InvalidArgument):
        await client.accounts.check_name_availability(None, {"name": "adla1"})
    assert arm.requests == []


@pytest.mark.asyncio
async def test_firewall_rule_lifecycle(client, arm):
    rule = ACCOUNT.with_child("office")
    arm.queue(
        httpx.Response(200, json={"name": "office", "properties": {"startIpAddress": "10.0.0.1"}}),
        httpx.Response(204),
    )
    res = await client.firewall_rules.create_or_update(
        rule, {"start_ip_address": "10.0.0.1", "end_ip_address": "10.0.0.255"})
    assert res.name == "office"
    assert _body(arm.requests[0]) == {"properties": {"startIpAddress": "10.0.0.1", "endIpAddress": "10.0.0.255"}}
    assert await client.firewall_rules.delete(rule) is None


@pytest.mark.asyncio
async def test_storage_account_add_and_sas_tokens(client, arm):
    container = ACCOUNT.with_child("st1", "logs")
    arm.queue(
        httpx.Response(200),
        httpx.Response(200, json={"value": [{"accessToken": "t1"}], "nextLink": "https://arm.test/sas/2"}),
        httpx.Response(200, json={"value": [{"accessToken": "t2"}]}),
    )
    await client.storage_accounts.add(ACCOUNT.with_child("st1"), {"access_key": "k=="})
    tokens = await client.storage_accounts.list_sas_tokens(container).collect()
    assert [t.model_extra["accessToken"] for t in tokens] == ["t1", "t2"]
    assert [r.method for r in arm.requests] == ["PUT", "POST", "GET"]
    assert arm.requests[1].url.path.endswith("/storageAccounts/st1/containers/logs/listSasTokens")
    assert _body(arm.requests[0]) == {"properties": {"accessKey": "k=="}}


@pytest.mark.asyncio
async def test_store_account_add_defaults_body(client, arm):
    arm.queue(httpx.Response(200))
    await client.data_lake_store_accounts.add(ACCOUNT.with_child("store2"))
    assert _body(arm.requests[0]) == {"properties": {}}
    assert arm.requests[0].url.path.endswith("/dataLakeStoreAccounts/store2")


# ---------- blocking twin ----------

def test_blocking_client_uses_same_calls(client, arm):
    arm.queue(page(["a"], "page2"), page(["b"]), httpx.Response(200, json={"name": "adla1"}))
    sync = client.blocking()
    names = [r.name for r in sync.accounts.list()]
    assert names == ["a", "b"]
    res = sync.accounts.get(ACCOUNT)
    assert isinstance(res, Resource)
    assert res.name == "adla1"


def test_blocking_client_raises_invalid_argument_without_io(client, arm):
    with pytest.raises(InvalidArgument):
        client.blocking().accounts.get(ResourceIdentity())
    assert arm.requests == []


# ---------- credentials stay on the base host ----------

@pytest.mark.asyncio
async def test_bearer_token_not_sent_to_foreign_next_link(arm):
    async def token():
        return "secret-arm-token"

    c = DataLakeClient(ServiceClient(base_url=BASE, subscription_id="s", api_version="v",
                                     token_provider=token, transport=arm.transport))
    arm.queue(page(["a"], "https://evil.example/steal"), page(["b"]))
    names = [r.name for r in await c.accounts.list().collect()]
    assert names == ["a", "b"]
    assert arm.requests[0].headers["Authorization"] == "Bearer secret-arm-token"
    assert arm.requests[1].url.host == "evil.example"
    assert "Authorization" not in arm.requests[1].headers


def test_own_host_check(service):
    assert service.is_own_host("page2")
    assert service.is_own_host("https://arm.test/subscriptions/s/next?x=1")
    assert not service.is_own_host("https://evil.example/steal")
    assert not service.is_own_host("https://arm.test.evil.example/steal")


# ---------- long-running polling ----------

@pytest.fixture
def sleeps(monkeypatch):
    seen = []

    async def fake_sleep(delay):
        seen.append(delay)

    monkeypatch.setattr(lro.asyncio, "sleep", fake_sleep)
    return seen


@pytest.mark.asyncio
async def test_polling_honours_retry_after(arm, sleeps):
    c = DataLakeClient(ServiceClient(base_url=BASE, subscription_id="sub-1", api_version="v",
                                     transport=arm.transport, poll_interval=7, max_polls=5))
    arm.queue(
        httpx.Response(202, headers={"Location": "https://arm.test/ops/4", "Retry-After": "3"}),
        httpx.Response(202, headers={"Retry-After": "Wed, 21 Oct 2015 07:28:00 GMT"}),
        httpx.Response(202),
        httpx.Response(204),
    )
    await c.accounts.delete(ACCOUNT)
    # header value, then the configured interval for an HTTP-date and for no header
    assert sleeps == [3.0, 7, 7]


@pytest.mark.asyncio
async def test_create_polls_location_then_rereads(client, arm, sleeps):
    arm.queue(
        httpx.Response(201, json={"name": "adla1"}, headers={"Location": "https://arm.test/ops/7"}),
        httpx.Response(202),
        httpx.Response(200, json={}),
        httpx.Response(200, json={"name": "adla1", "properties": {"provisioningState": "Succeeded"}}),
    )
    res = await client.accounts.create(ACCOUNT, CREATE)
    assert res.properties == {"provisioningState": "Succeeded"}
    assert [(r.method, r.url.path) for r in arm.requests] == [
        ("PUT", ACCOUNT_PATH),
        ("GET", "/ops/7"),
        ("GET", "/ops/7"),
        ("GET", ACCOUNT_PATH),
    ]
    assert len(sleeps) == 2


@pytest.mark.asyncio
async def test_update_polls_location_then_rereads(client, arm, sleeps):
    arm.queue(
        httpx.Response(202, headers={"Location": "https://arm.test/ops/8"}),
        httpx.Response(200),
        httpx.Response(200, json={"name": "adla1", "tags": {"env": "prod"}}),
    )
    res = await client.accounts.update(ACCOUNT, {"tags": {"env": "prod"}})
    assert res.tags == {"env": "prod"}
    assert [r.method for r in arm.requests] == ["PATCH", "GET", "GET"]
    assert arm.requests[2].url.path == ACCOUNT_PATH


@pytest.mark.asyncio
async def test_location_poll_error_is_fault(client, arm, sleeps):
    arm.queue(
        httpx.Response(202, headers={"Location": "https://arm.test/ops/5"}),
        httpx.Response(500, json={"error": "boom"}),
    )
    with pytest.raises(Fault) as ei:
        await client.accounts.delete(ACCOUNT)
    assert ei.value.status == 500


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [202, 204])
async def test_create_accepts_only_200_or_201(client, arm, status):
    arm.queue(httpx.Response(status, headers={"Location": "https://arm.test/ops/6"}))
    with pytest.raises(Fault) as ei:
        await client.accounts.create(ACCOUNT, CREATE)
    assert ei.value.status == status
    assert len(arm.requests) == 1


@pytest.mark.asyncio
async def test_delete_rejects_201(client, arm):
    arm.queue(httpx.Response(201))
    with pytest.raises(Fault):
        await client.accounts.delete(ACCOUNT)


# ---------- child resources ----------

@pytest.mark.asyncio
async def test_storage_account_update_and_delete(client, arm):
    storage = ACCOUNT.with_child("st1")
    arm.queue(httpx.Response(200), httpx.Response(200))
    assert await client.storage_accounts.update(storage, {"access_key": "new=="}) is None
    assert await client.storage_accounts.delete(storage) is None
    assert [r.method for r in arm.requests] == ["PATCH", "DELETE"]
    assert arm.requests[0].url.path == ACCOUNT_PATH + "/storageAccounts/st1"
    assert _body(arm.requests[0]) == {"properties": {"accessKey": "new=="}}


@pytest.mark.asyncio
async def test_storage_containers(client, arm):
    arm.queue(
        page(["logs"], "https://arm.test/containers/2"),
        page(["data"]),
        httpx.Response(200, json={"name": "logs", "type": "containers"}),
    )
    names = [c.name async for c in client.storage_accounts.list_containers(ACCOUNT.with_child("st1"))]
    assert names == ["logs", "data"]
    container = await client.storage_accounts.get_container(ACCOUNT.with_child("st1", "logs"))
    assert container.type == "containers"
    assert arm.requests[0].url.path == ACCOUNT_PATH + "/storageAccounts/st1/containers"
    assert arm.requests[2].url.path == ACCOUNT_PATH + "/storageAccounts/st1/containers/logs"


@pytest.mark.asyncio
async def test_firewall_rule_update(client, arm):
    arm.queue(httpx.Response(200, json={"name": "office", "properties": {"endIpAddress": "10.0.0.9"}}))
    res = await client.firewall_rules.update(ACCOUNT.with_child("office"), {"end_ip_address": "10.0.0.9"})
    assert res.properties == {"endIpAddress": "10.0.0.9"}
    req = arm.requests[0]
    assert req.method == "PATCH"
    assert req.url.path == ACCOUNT_PATH + "/firewallRules/office"
    assert _body(req) == {"properties": {"endIpAddress": "10.0.0.9"}}


@pytest.mark.asyncio
async def test_store_accounts_list_get_delete(client, arm):
    arm.queue(
        page(["store1"], "https://arm.test/stores/2"),
        page(["store2"]),
        httpx.Response(200, json={"name": "store2", "properties": {"suffix": "azuredatalakestore.net"}}),
        httpx.Response(200),
    )
    stores = await client.data_lake_store_accounts.list_by_account(ACCOUNT, QueryOptions(top=2)).collect()
    assert [s.name for s in stores] == ["store1", "store2"]
    assert arm.requests[0].url.params["$top"] == "2"
    assert "$top" not in arm.requests[1].url.params

    store = await client.data_lake_store_accounts.get(ACCOUNT.with_child("store2"))
    assert store.properties["suffix"] == "azuredatalakestore.net"
    assert await client.data_lake_store_accounts.delete(ACCOUNT.with_child("store2")) is None
    assert [r.method for r in arm.requests] == ["GET", "GET", "GET", "DELETE"]
    assert arm.requests[3].url.path == ACCOUNT_PATH + "/dataLakeStoreAccounts/store2"
