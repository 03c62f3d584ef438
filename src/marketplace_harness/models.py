# models.py
# Data contracts for the marketplace integration harness.
# Pure schema and validation, plus the append-only bookkeeping on RunResults.
#
# Amounts are integers in wei. Formatting to ether belongs to display.py.

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Identity(BaseModel):
    """A signer the harness can submit transactions from and query balances for."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    address: str = Field(..., description="Checksummed account address.")
    account: Any = Field(default=None, repr=False, description="Signing account, if any.")


class ApiResource(BaseModel):
    """Snapshot of a registered API as returned by getAPI(id)."""

    id: int
    endpoint: str
    description: str
    price_per_call: int
    stake: int
    provider: str
    active: bool
    total_calls: int = 0
    successful_calls: int = 0
    created_at: int = 0


class ContractConstants(BaseModel):
    """Configuration and counters exposed by the contract's view functions."""

    min_stake: int
    slash_percentage: int
    withdrawal_delay: int
    next_api_id: int
    oracle: str
    owner: str


class Receipt(BaseModel):
    """A confirmed transaction."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    tx_hash: str
    block_number: int
    gas_used: int
    status: int = 1
    logs: list[Any] = Field(default_factory=list)


class DecodedEvent(BaseModel):
    """A log entry decoded against the contract ABI."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str
    args: dict[str, Any] = Field(default_factory=dict)
    log: Any = Field(default=None, repr=False, description="The raw log entry.")


class TestRecord(BaseModel):
    """Outcome of one named scenario."""

    __test__ = False

    name: str
    passed: bool
    error: str | None = None


class RunResults(BaseModel):
    """Append-only tally of every scenario executed by one harness."""

    passed: int = 0
    failed: int = 0
    errors: list[str] = Field(default_factory=list)
    records: list[TestRecord] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return self.passed + self.failed

    def record_pass(self, name: str) -> TestRecord:
        record = TestRecord(name=name, passed=True)
        self.passed += 1
        self.records.append(record)
        return record

    def record_failure(self, name: str, message: str) -> TestRecord:
        record = TestRecord(name=name, passed=False, error=message)
        self.failed += 1
        self.errors.append(f"{name}: {message}")
        self.records.append(record)
        return record
