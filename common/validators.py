from typing import Any, List, Optional, Sequence, Type, TypeVar

from pydantic import BaseModel, ValidationError

from common.errors import InvalidArgument
from common.models import QueryOptions, ResourceIdentity

M = TypeVar("M", bound=BaseModel)


def validate_identity(identity: Optional[ResourceIdentity], required: Sequence[str]) -> list[str]:
    errs: list[str] = []
    if identity is None:
        return ["identity is required"]

    for field in required:
        v = getattr(identity, field, None)
        if v is None:
            errs.append(f"{field} is required and cannot be null")
        elif not str(v).strip():
            errs.append(f"{field} cannot be empty")
    return errs


def validate_query(query: Optional[QueryOptions]) -> list[str]:
    return query.problems() if query else []


def validate_body(model: Type[M], payload: Any, name: str = "parameters") -> M:
    """
    Accepts a model instance or a plain dict.
    Schema problems (missing sub-fields, ranges) become InvalidArgument.
    """
    if payload is None:
        raise InvalidArgument(f"{name} is required and cannot be null")
    if isinstance(payload, model):
        return payload
    if isinstance(payload, BaseModel):
        payload = payload.model_dump()
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        errs: List[str] = []
        for err in e.errors():
            loc = ".".join(str(p) for p in err.get("loc", ()))
            errs.append(f"{name}.{loc}: {err.get('msg')}" if loc else f"{name}: {err.get('msg')}")
        raise InvalidArgument(errs) from e
