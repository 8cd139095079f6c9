import pytest

from connectors.datalake.client import ServiceClient
from connectors.datalake.operations import DataLakeClient
from fakes import BASE, FakeArm


@pytest.fixture
def arm() -> FakeArm:
    return FakeArm()


@pytest.fixture
def service(arm: FakeArm) -> ServiceClient:
    return ServiceClient(
        base_url=BASE,
        subscription_id="sub-1",
        api_version="2016-11-01",
        accept_language="en-US",
        user_agent="datalake-hub-tests",
        transport=arm.transport,
        poll_interval=0,
        max_polls=5,
    )


@pytest.fixture
def client(service: ServiceClient) -> DataLakeClient:
    return DataLakeClient(service)
