# connectors/datalake/client.py
from __future__ import annotations
import logging
import uuid
import httpx
from string import Formatter
from urllib.parse import urlparse, quote
from typing import Any, Awaitable, Callable, Dict, Optional
from common.settings import settings
from common.auth import get_arm_token
from common.errors import InvalidArgument
from common.models import QueryOptions, ResourceIdentity
from common.validators import validate_identity, validate_query

log = logging.getLogger(__name__)

TokenProvider = Callable[[], Awaitable[str]]


def _is_absolute(url: str) -> bool:
    try:
        p = urlparse(url)
        return bool(p.scheme and p.netloc)
    except ValueError:
        return False


def _placeholders(template: str) -> list[str]:
    return [name for _, name, _, _ in Formatter().parse(template) if name]


class ServiceClient:
    """
    One request per call: no retries, no caching.
    Relative paths get api-version appended; continuation tokens are sent verbatim.
    """

    def __init__(self,
                 base_url: Optional[str] = None,
                 subscription_id: Optional[str] = None,
                 api_version: Optional[str] = None,
                 accept_language: Optional[str] = None,
                 user_agent: Optional[str] = None,
                 token_provider: Optional[TokenProvider] = None,
                 timeout: Optional[float] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None,
                 poll_interval: Optional[float] = None,
                 max_polls: Optional[int] = None):
        self.base_url = (base_url or settings.arm_base_url).rstrip("/") + "/"
        self.subscription_id = subscription_id if subscription_id is not None else settings.arm_subscription_id
        self.api_version = api_version if api_version is not None else settings.arm_api_version
        self.accept_language = accept_language or settings.arm_accept_language
        self.user_agent = user_agent or settings.arm_user_agent
        self.token_provider = token_provider
        self.timeout = settings.http_timeout if timeout is None else timeout
        self.transport = transport
        self.poll_interval = settings.lro_poll_interval if poll_interval is None else poll_interval
        self.max_polls = settings.lro_max_polls if max_polls is None else max_polls

    @classmethod
    def from_settings(cls, **overrides: Any) -> "ServiceClient":
        """Client wired to .env; uses client-credentials tokens when ARM_* credentials are set."""
        if "token_provider" not in overrides and settings.has_credentials:
            overrides["token_provider"] = get_arm_token
        return cls(**overrides)

    # ---------- paths ----------

    def build_path(self, template: str, identity: Optional[ResourceIdentity],
                   query: Optional[QueryOptions] = None, **extra: Optional[str]) -> str:
        """
        Fill a path template from identity (+ extra values such as location).
        Every placeholder is required; all problems are reported together.
        """
        names = _placeholders(template)
        id_fields = [n for n in names if n not in extra]
        errs = validate_identity(identity, id_fields) + validate_query(query)
        for k, v in extra.items():
            if v is None or not str(v).strip():
                errs.append(f"{k} is required and cannot be null")
        if errs:
            raise InvalidArgument(errs)

        values = {n: quote(str(extra[n] if n in extra else getattr(identity, n)), safe="") for n in names}
        return template.format(**values)

    def resolve(self, url_or_path: str) -> str:
        if _is_absolute(url_or_path):
            return url_or_path
        return str(httpx.URL(self.base_url).join(url_or_path.lstrip("/")))

    def is_own_host(self, url_or_path: str) -> bool:
        """True when the URL (after resolve) points at the configured base host."""
        try:
            return httpx.URL(self.resolve(url_or_path)).host == httpx.URL(self.base_url).host
        except httpx.InvalidURL:
            return False

    # ---------- transport ----------

    async def _headers(self, url: str, extra_headers: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Accept-Language": self.accept_language,
            "User-Agent": self.user_agent,
            "x-ms-client-request-id": str(uuid.uuid4()),
        }
        # the bearer token never leaves the base host
        if self.token_provider is not None and self.is_own_host(url):
            headers["Authorization"] = f"Bearer {await self.token_provider()}"
        elif self.token_provider is not None:
            log.warning("not sending credentials to foreign host: %s", url)
        if extra_headers:
            headers.update(extra_headers)
        return headers

    async def _request(self, method: str, url: str,
                       params: Optional[Dict[str, Any]] = None,
                       json: Any = None,
                       extra_headers: Optional[Dict[str, str]] = None) -> httpx.Response:
        headers = await self._headers(url, extra_headers)
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as cli:
            r = await cli.request(method, url, params=params, json=json, headers=headers)
        log.debug("%s %s -> %s", method, r.request.url, r.status_code)
        return r

    async def send(self, method: str, path: str,
                   params: Optional[Dict[str, Any]] = None,
                   json: Any = None,
                   extra_headers: Optional[Dict[str, str]] = None) -> httpx.Response:
        """First-page / single-resource request against a path relative to the base URL."""
        if not self.api_version:
            raise InvalidArgument("api_version is required and cannot be null")
        effective = dict(params or {})
        effective["api-version"] = self.api_version
        return await self._request(method, self.resolve(path), params=effective, json=json,
                                   extra_headers=extra_headers)

    async def fetch_next(self, token: str) -> httpx.Response:
        """
        GET a continuation token (nextLink / polling URL).
        The token alone determines the URL: no params appended, scope not re-validated.
        """
        if not token:
            raise InvalidArgument("continuation token is required and cannot be empty")
        return await self._request("GET", self.resolve(token))
