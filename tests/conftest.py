import pytest

from marketplace_harness.config import HarnessConfig
from marketplace_harness.fake import FakeChainClient
from marketplace_harness.harness import Harness

CONTRACT = "0x5FbDB2315678afecb367f032d93F642f64180aa3"


@pytest.fixture
def config():
    return HarnessConfig(contract_address=CONTRACT, backend="memory")


@pytest.fixture
def chain():
    return FakeChainClient(CONTRACT)


@pytest.fixture
def harness(config, chain):
    return Harness(config, chain=chain)
