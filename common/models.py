from __future__ import annotations
from ipaddress import IPv4Address
from pydantic import BaseModel, ConfigDict, Field, AliasChoices, field_validator, model_validator
from typing import Any, Dict, Generic, List, Optional, TypeVar

ItemT = TypeVar("ItemT")


def _compact(d: Dict[str, Any]) -> Dict[str, Any]:
    """Drop keys whose value is None (omitted fields stay off the wire)."""
    return {k: v for k, v in d.items() if v is not None}


# ---------- Paging ----------

class Page(BaseModel, Generic[ItemT]):
    """One page of a list response: items in server order + optional continuation token."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    items: List[ItemT] = Field(default_factory=list, alias="value")
    next_link: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("nextLink", "@odata.nextLink", "next_link"),
    )

    @field_validator("items", mode="before")
    @classmethod
    def _null_is_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    @property
    def has_more(self) -> bool:
        return bool(self.next_link)


class ResourceIdentity(BaseModel):
    """Scope of a call. Which fields are required depends on the operation."""
    model_config = ConfigDict(frozen=True)

    subscription_id: Optional[str] = None
    resource_group_name: Optional[str] = None
    account_name: Optional[str] = None
    child_name: Optional[str] = None        # storage account / firewall rule / store account
    grandchild_name: Optional[str] = None   # container

    def with_child(self, child_name: Optional[str], grandchild_name: Optional[str] = None) -> "ResourceIdentity":
        return self.model_copy(update={"child_name": child_name, "grandchild_name": grandchild_name})


class QueryOptions(BaseModel):
    """OData list options. Null fields are omitted from the request."""
    model_config = ConfigDict(frozen=True)

    filter: Optional[str] = None
    top: Optional[int] = None
    skip: Optional[int] = None
    select: Optional[str] = None
    orderby: Optional[str] = None
    count: Optional[bool] = None

    def problems(self) -> List[str]:
        errs: List[str] = []
        if self.top is not None and self.top < 0:
            errs.append("top must be >= 0")
        if self.skip is not None and self.skip < 0:
            errs.append("skip must be >= 0")
        return errs

    def to_params(self) -> Dict[str, str]:
        params = {
            "$filter": self.filter,
            "$top": None if self.top is None else str(self.top),
            "$skip": None if self.skip is None else str(self.skip),
            "$select": self.select,
            "$orderby": self.orderby,
            "$count": None if self.count is None else ("true" if self.count else "false"),
        }
        return _compact(params)


# ---------- Items ----------

class Resource(BaseModel):
    """Generic ARM resource. Unknown fields are kept as extras."""
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    name: Optional[str] = None
    type: Optional[str] = None
    location: Optional[str] = None
    tags: Optional[Dict[str, str]] = None
    properties: Optional[Dict[str, Any]] = None


class OperationStatus(BaseModel):
    model_config = ConfigDict(extra="allow")

    status: Optional[str] = None
    error: Optional[Any] = None


# ---------- Request bodies ----------

class DataLakeStoreRef(BaseModel):
    name: str = Field(..., min_length=1)
    suffix: Optional[str] = None

    def to_body(self) -> Dict[str, Any]:
        return {"name": self.name, "properties": _compact({"suffix": self.suffix})}


class StorageAccountRef(BaseModel):
    name: str = Field(..., min_length=1)
    access_key: str = Field(..., min_length=1)
    suffix: Optional[str] = None

    def to_body(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "properties": _compact({"accessKey": self.access_key, "suffix": self.suffix}),
        }


class CreateAccountParameters(BaseModel):
    location: str = Field(..., min_length=1)
    default_data_lake_store_account: str = Field(..., min_length=1)
    data_lake_store_accounts: List[DataLakeStoreRef] = Field(..., min_length=1)
    storage_accounts: List[StorageAccountRef] = Field(default_factory=list)
    tags: Optional[Dict[str, str]] = None
    max_degree_of_parallelism: Optional[int] = Field(default=None, ge=1)
    max_job_count: Optional[int] = Field(default=None, ge=1)
    query_store_retention: Optional[int] = Field(default=None, ge=1, le=180)

    @model_validator(mode="after")
    def _default_store_is_listed(self) -> "CreateAccountParameters":
        names = {s.name for s in self.data_lake_store_accounts}
        if self.default_data_lake_store_account not in names:
            raise ValueError("default_data_lake_store_account must be one of data_lake_store_accounts")
        return self

    def to_body(self) -> Dict[str, Any]:
        props = _compact({
            "defaultDataLakeStoreAccount": self.default_data_lake_store_account,
            "dataLakeStoreAccounts": [s.to_body() for s in self.data_lake_store_accounts],
            "storageAccounts": [s.to_body() for s in self.storage_accounts] or None,
            "maxDegreeOfParallelism": self.max_degree_of_parallelism,
            "maxJobCount": self.max_job_count,
            "queryStoreRetention": self.query_store_retention,
        })
        return _compact({"location": self.location, "tags": self.tags, "properties": props})


class UpdateAccountParameters(BaseModel):
    tags: Optional[Dict[str, str]] = None
    max_degree_of_parallelism: Optional[int] = Field(default=None, ge=1)
    max_job_count: Optional[int] = Field(default=None, ge=1)
    query_store_retention: Optional[int] = Field(default=None, ge=1, le=180)

    def to_body(self) -> Dict[str, Any]:
        props = _compact({
            "maxDegreeOfParallelism": self.max_degree_of_parallelism,
            "maxJobCount": self.max_job_count,
            "queryStoreRetention": self.query_store_retention,
        })
        return _compact({"tags": self.tags, "properties": props or None})


class AddStorageAccountParameters(BaseModel):
    access_key: str = Field(..., min_length=1)
    suffix: Optional[str] = None

    def to_body(self) -> Dict[str, Any]:
        return {"properties": _compact({"accessKey": self.access_key, "suffix": self.suffix})}


class UpdateStorageAccountParameters(BaseModel):
    access_key: Optional[str] = Field(default=None, min_length=1)
    suffix: Optional[str] = None

    def to_body(self) -> Dict[str, Any]:
        return {"properties": _compact({"accessKey": self.access_key, "suffix": self.suffix})}


class AddDataLakeStoreParameters(BaseModel):
    suffix: Optional[str] = None

    def to_body(self) -> Dict[str, Any]:
        return {"properties": _compact({"suffix": self.suffix})}


class FirewallRuleParameters(BaseModel):
    start_ip_address: IPv4Address
    end_ip_address: IPv4Address

    @model_validator(mode="after")
    def _ordered(self) -> "FirewallRuleParameters":
        if self.start_ip_address > self.end_ip_address:
            raise ValueError("start_ip_address must not be greater than end_ip_address")
        return self

    def to_body(self) -> Dict[str, Any]:
        return {"properties": {
            "startIpAddress": str(self.start_ip_address),
            "endIpAddress": str(self.end_ip_address),
        }}


class UpdateFirewallRuleParameters(BaseModel):
    start_ip_address: Optional[IPv4Address] = None
    end_ip_address: Optional[IPv4Address] = None

    def to_body(self) -> Dict[str, Any]:
        return {"properties": _compact({
            "startIpAddress": str(self.start_ip_address) if self.start_ip_address else None,
            "endIpAddress": str(self.end_ip_address) if self.end_ip_address else None,
        })}


class NameAvailabilityParameters(BaseModel):
    name: str = Field(..., min_length=1)
    type: str = "Microsoft.DataLakeAnalytics/accounts"

    def to_body(self) -> Dict[str, Any]:
        return {"name": self.name, "type": self.type}
