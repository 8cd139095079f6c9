# common/auth.py
from __future__ import annotations
import time
import httpx
from common.settings import settings

TIMEOUT = 30  # seconds
ARM_SCOPE = "https://management.azure.com/.default"

# very small in-proc cache so we don't hit AAD every call
_token_cache: dict[str, tuple[str, float]] = {}  # {scope: (access_token, expires_at)}


async def get_arm_token(scope: str = ARM_SCOPE) -> str:
    """
    Client credentials flow for Azure Resource Manager.
    Uses ARM_TENANT_ID / ARM_CLIENT_ID / ARM_CLIENT_SECRET from settings.
    """
    tok = _token_cache.get(scope)
    now = time.time()
    if tok and tok[1] - 60 > now:  # 60s of slack
        return tok[0]

    token_url = f"https://login.microsoftonline.com/{settings.arm_tenant_id}/oauth2/v2.0/token"
    data = {
        "client_id": settings.arm_client_id,
        "client_secret": settings.arm_client_secret,
        "grant_type": "client_credentials",
        "scope": scope,
    }

    async with httpx.AsyncClient(timeout=TIMEOUT) as cli:
        r = await cli.post(token_url, data=data)
        r.raise_for_status()
        j = r.json()
        access_token = j["access_token"]
        expires_in = int(j.get("expires_in", 3600))
        _token_cache[scope] = (access_token, now + expires_in)
        return access_token
