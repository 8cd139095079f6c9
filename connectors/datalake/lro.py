# connectors/datalake/lro.py
from __future__ import annotations
import asyncio
import logging
from typing import Optional
import httpx
from common.errors import OperationFailed
from common.models import OperationStatus
from connectors.datalake.client import ServiceClient
from connectors.datalake.decode import decode_body, to_fault

log = logging.getLogger(__name__)

SUCCEEDED = "succeeded"
TERMINAL_FAILURES = ("failed", "canceled", "cancelled")


def _delay(response: httpx.Response, default: float) -> float:
    ra = response.headers.get("Retry-After")
    if ra:
        try:
            return max(0.0, float(ra))
        except ValueError:
            pass  # HTTP-date form; fall back to the configured interval
    return default


async def wait_for_completion(client: ServiceClient,
                              initial: httpx.Response,
                              resource_path: Optional[str] = None) -> Optional[httpx.Response]:
    """
    Poll a long-running operation accepted by `initial`.

    Azure-AsyncOperation: GET the status document until Succeeded/Failed/Canceled.
    Location: GET until it stops answering 202.
    Neither header: the operation already finished.
    When resource_path is given (PUT/PATCH) the final resource is re-read from it.
    """
    async_url = initial.headers.get("Azure-AsyncOperation")
    location = initial.headers.get("Location")
    if not async_url and not location:
        if resource_path and initial.status_code == 202:
            return await client.send("GET", resource_path)
        return initial

    last = initial
    for attempt in range(1, client.max_polls + 1):
        await asyncio.sleep(_delay(last, client.poll_interval))

        if async_url:
            last = await client.fetch_next(async_url)
            status = decode_body(last, OperationStatus, (200,))
            state = ((status.status if status else None) or "").lower()
            log.debug("lro poll %s attempt=%s state=%s", async_url, attempt, state)
            if state == SUCCEEDED:
                break
            if state in TERMINAL_FAILURES:
                body = status.error if status.error is not None else status.model_dump()
                raise OperationFailed(last.status_code, body, status.status, url=async_url)
            continue

        last = await client.fetch_next(location)
        log.debug("lro poll %s attempt=%s status=%s", location, attempt, last.status_code)
        if last.status_code == 202:
            continue
        if last.status_code in (200, 201, 204):
            break
        raise to_fault(last)
    else:
        raise TimeoutError(f"long-running operation not finished after {client.max_polls} polls")

    if resource_path:
        return await client.send("GET", resource_path)
    return last
