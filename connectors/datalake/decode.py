# connectors/datalake/decode.py
from __future__ import annotations
from typing import Any, Collection, Optional, Tuple, Type, TypeVar
import httpx
from pydantic import BaseModel, ValidationError
from common.errors import Fault, MalformedResponse
from common.models import Page, Resource

M = TypeVar("M", bound=BaseModel)


def _request_line(response: httpx.Response) -> Tuple[Optional[str], Optional[str]]:
    # Responses built by hand (tests) have no request attached.
    try:
        req = response.request
    except RuntimeError:
        return None, None
    return req.method, str(req.url)


def to_fault(response: httpx.Response) -> Fault:
    """Error payload as JSON when it parses, raw text otherwise."""
    text = response.text
    try:
        body: Any = response.json() if text.strip() else text
    except ValueError:
        body = text
    method, url = _request_line(response)
    return Fault(response.status_code, body, method=method, url=url)


def _payload(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError as e:
        raise MalformedResponse(response.status_code, response.text, f"invalid JSON: {e}") from e


def decode_page(response: httpx.Response,
                item_model: Type[Any] = Resource,
                success: Collection[int] = (200,)) -> Page:
    """
    Success status -> Page[item_model]; other status -> Fault;
    success status with an undecodable body -> MalformedResponse.
    """
    if response.status_code not in success:
        raise to_fault(response)
    payload = _payload(response)
    try:
        return Page[item_model].model_validate(payload)
    except ValidationError as e:
        raise MalformedResponse(response.status_code, response.text, f"not a page: {e.error_count()} error(s)") from e


def decode_body(response: httpx.Response,
                model: Optional[Type[M]] = Resource,
                success: Collection[int] = (200,)) -> Any:
    """
    Single-resource decode. Empty bodies (204, most 202s) give None.
    model=None returns the parsed JSON as is.
    """
    if response.status_code not in success:
        raise to_fault(response)
    if not response.content.strip():
        return None
    payload = _payload(response)
    if model is None:
        return payload
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise MalformedResponse(response.status_code, response.text, f"not a {model.__name__}") from e
