# apps/gateway/main.py
from fastapi import FastAPI, Depends, Request
from fastapi.responses import JSONResponse
from typing import Any, Dict, Optional
import logging
from dotenv import load_dotenv
from common.cache import ListCache
from common.errors import Fault, InvalidArgument, MalformedResponse
from common.models import Page, QueryOptions, ResourceIdentity
from common.settings import settings
from connectors.datalake.explorer import AccountExplorer
from connectors.datalake.operations import DataLakeClient
from connectors.datalake.paginate import Pager

load_dotenv()  # picks up .env from the current working directory

log = logging.getLogger("datalake-hub")
logging.basicConfig(level=logging.INFO)


def _mask(v: Optional[str], head: int = 6, tail: int = 4) -> Optional[str]:
    if not v or len(v) <= head + tail:
        return v
    return f"{v[:head]}...{v[-tail:]}"


# ---------- Explorer (one per process; overridable in tests) ----------
_explorer: Optional[AccountExplorer] = None


def get_explorer() -> AccountExplorer:
    global _explorer
    if _explorer is None:
        _explorer = AccountExplorer(DataLakeClient(), ListCache())
    return _explorer


def _query(filter: Optional[str], top: Optional[int], skip: Optional[int],
           select: Optional[str], orderby: Optional[str], count: Optional[bool]) -> Optional[QueryOptions]:
    q = QueryOptions(filter=filter, top=top, skip=skip, select=select, orderby=orderby, count=count)
    return q if q.to_params() else None


def _page_json(page: Page) -> Dict[str, Any]:
    items = [i.model_dump(exclude_none=True) for i in page.items]
    return {"ok": True, "count": len(items), "items": items, "next_page_token": page.next_link}


async def _one_page(explorer: AccountExplorer, pager: Pager, page_token: Optional[str]) -> Dict[str, Any]:
    if page_token and not explorer.client.service.is_own_host(page_token):
        raise InvalidArgument("page_token must point at the configured ARM host")
    return _page_json(await pager.fetch_page(page_token))


# ---------- App ----------
app = FastAPI(title="datalake-hub", version="0.1.0")


@app.exception_handler(InvalidArgument)
async def _invalid_argument(request: Request, exc: InvalidArgument):
    return JSONResponse(status_code=400, content={
        "ok": False, "error": "invalid_argument", "details": exc.problems,
    })


@app.exception_handler(Fault)
async def _upstream_fault(request: Request, exc: Fault):
    log.warning("upstream fault %s on %s %s", exc.status, exc.method, exc.url)
    return JSONResponse(status_code=502, content={
        "ok": False, "error": "upstream_fault",
        "upstream_status": exc.status, "upstream_body": exc.body,
    })


@app.exception_handler(MalformedResponse)
async def _malformed(request: Request, exc: MalformedResponse):
    log.warning("malformed upstream response (status %s): %s", exc.status, exc.reason)
    return JSONResponse(status_code=502, content={
        "ok": False, "error": "malformed_upstream_response",
        "upstream_status": exc.status, "detail": exc.reason,
    })


@app.on_event("startup")
def _print_cfg():
    log.info(
        "CFG arm=%s api-version=%s subscription=%s client=%s",
        settings.arm_base_url,
        settings.arm_api_version,
        _mask(settings.arm_subscription_id),
        _mask(settings.arm_client_id),
    )


@app.get("/health")
def health():
    return {
        "ok": True,
        "service": "datalake-hub",
        "arm_base_url": settings.arm_base_url,
        "api_version": settings.arm_api_version,
        "subscription": _mask(settings.arm_subscription_id),
    }


@app.get("/")
def hub_root():
    return {
        "service": "datalake-hub",
        "endpoints": {
            "health": "/health",
            "accounts": "GET /subscriptions/{sub}/accounts?page_token=",
            "accounts_by_rg": "GET /subscriptions/{sub}/resourceGroups/{rg}/accounts?page_token=",
            "account": "GET /subscriptions/{sub}/resourceGroups/{rg}/accounts/{name}",
            "firewall_rules": "GET /subscriptions/{sub}/resourceGroups/{rg}/accounts/{name}/firewallRules",
            "storage_accounts": "GET /subscriptions/{sub}/resourceGroups/{rg}/accounts/{name}/storageAccounts",
            "cached": "GET /subscriptions/{sub}/accounts:cached?force_refresh=",
            "cache_clear": "POST /cache:clear",
            "docs": "/docs",
        },
    }


@app.get("/subscriptions/{subscription_id}/accounts")
async def list_accounts(
    subscription_id: str,
    page_token: Optional[str] = None,
    filter: Optional[str] = None,
    top: Optional[int] = None,
    skip: Optional[int] = None,
    select: Optional[str] = None,
    orderby: Optional[str] = None,
    count: Optional[bool] = None,
    explorer: AccountExplorer = Depends(get_explorer),
):
    """One page at a time; pass next_page_token back as page_token."""
    pager = explorer.client.accounts.list(
        ResourceIdentity(subscription_id=subscription_id),
        _query(filter, top, skip, select, orderby, count),
    )
    return await _one_page(explorer, pager, page_token)


@app.get("/subscriptions/{subscription_id}/resourceGroups/{resource_group}/accounts")
async def list_accounts_by_rg(
    subscription_id: str,
    resource_group: str,
    page_token: Optional[str] = None,
    filter: Optional[str] = None,
    top: Optional[int] = None,
    explorer: AccountExplorer = Depends(get_explorer),
):
    pager = explorer.client.accounts.list_by_resource_group(
        ResourceIdentity(subscription_id=subscription_id, resource_group_name=resource_group),
        _query(filter, top, None, None, None, None),
    )
    return await _one_page(explorer, pager, page_token)


@app.get("/subscriptions/{subscription_id}/resourceGroups/{resource_group}/accounts/{account}")
async def get_account(subscription_id: str, resource_group: str, account: str,
                      explorer: AccountExplorer = Depends(get_explorer)):
    res = await explorer.client.accounts.get(ResourceIdentity(
        subscription_id=subscription_id, resource_group_name=resource_group, account_name=account))
    return {"ok": True, "account": res.model_dump(exclude_none=True) if res else None}


@app.get("/subscriptions/{subscription_id}/resourceGroups/{resource_group}/accounts/{account}/firewallRules")
async def firewall_rules(subscription_id: str, resource_group: str, account: str,
                         explorer: AccountExplorer = Depends(get_explorer)):
    rules = await explorer.firewall_rules(ResourceIdentity(
        subscription_id=subscription_id, resource_group_name=resource_group, account_name=account))
    return {"ok": True, "count": len(rules), "items": [r.model_dump(exclude_none=True) for r in rules]}


@app.get("/subscriptions/{subscription_id}/resourceGroups/{resource_group}/accounts/{account}/storageAccounts")
async def storage_accounts(subscription_id: str, resource_group: str, account: str,
                           explorer: AccountExplorer = Depends(get_explorer)):
    items = await explorer.storage_accounts(ResourceIdentity(
        subscription_id=subscription_id, resource_group_name=resource_group, account_name=account))
    return {"ok": True, "count": len(items), "items": [r.model_dump(exclude_none=True) for r in items]}


@app.get("/subscriptions/{subscription_id}/accounts:cached")
async def cached_accounts(subscription_id: str, force_refresh: bool = False,
                          explorer: AccountExplorer = Depends(get_explorer)):
    """Every page, walked once and served from the explorer's cache afterwards."""
    accounts = await explorer.list_accounts(subscription_id, force_refresh=force_refresh)
    return {"ok": True, "count": len(accounts), "items": [a.model_dump(exclude_none=True) for a in accounts]}


@app.post("/cache:clear")
async def clear_cache(subscription_id: Optional[str] = None,
                      explorer: AccountExplorer = Depends(get_explorer)):
    if subscription_id:
        removed = explorer.invalidate(subscription_id)
    else:
        removed = explorer.cache.clear()
    return {"ok": True, "removed": removed}
