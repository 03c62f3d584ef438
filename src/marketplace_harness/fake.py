# fake.py
# In-memory chain implementing the marketplace contract's observable rules.
#
# Selected with HARNESS_BACKEND=memory for dry runs, and used by the test
# suite to drive the harness without an RPC endpoint. Transactions are
# mined on submission: state changes immediately, wait() returns the receipt.
#
# Rules mirrored from the deployed contract:
#   registerAPI: stake >= MIN_STAKE, endpoint non-empty, price > 0
#   payForAPICall: API exists and is active, value >= pricePerCall;
#                  full value is forwarded to the provider

import itertools
import time
from typing import Any

from eth_account import Account
from web3 import Web3

from marketplace_harness.abi import EVENT_NAMES
from marketplace_harness.chain import (
    ChainClient,
    ChainError,
    ContractClient,
    PendingTransaction,
    TransactionReverted,
)
from marketplace_harness.models import ApiResource, DecodedEvent, Identity, Receipt

MIN_STAKE = Web3.to_wei(0.1, "ether")
SLASH_PERCENTAGE = 10
WITHDRAWAL_DELAY = 7 * 24 * 60 * 60

GAS_PRICE = Web3.to_wei(1, "gwei")
GAS_TRANSFER = 21_000
GAS_REGISTER = 185_000
GAS_PAYMENT = 62_000


class FakePendingTransaction(PendingTransaction):
    def __init__(self, receipt: Receipt) -> None:
        super().__init__(receipt.tx_hash)
        self._receipt = receipt

    def wait(self) -> Receipt:
        return self._receipt


class FakeContractClient(ContractClient):
    def __init__(self, chain: "FakeChainClient", address: str, signer: Identity) -> None:
        super().__init__(address, signer)
        self._chain = chain

    def connect(self, signer: Identity) -> "FakeContractClient":
        return FakeContractClient(self._chain, self.address, signer)

    def min_stake(self) -> int:
        return self._chain.min_stake

    def slash_percentage(self) -> int:
        return SLASH_PERCENTAGE

    def withdrawal_delay(self) -> int:
        return WITHDRAWAL_DELAY

    def next_api_id(self) -> int:
        return self._chain.next_api_id

    def oracle(self) -> str:
        return self._chain.oracle_address

    def owner(self) -> str:
        return self._chain.owner_address

    def provider_stakes(self, address: str) -> int:
        return self._chain.provider_stakes.get(address, 0)

    def get_api(self, api_id: int) -> ApiResource:
        api = self._chain.apis.get(api_id)
        if api is None:
            raise TransactionReverted("execution reverted: API does not exist")
        return api.model_copy()

    def register_api(
        self, endpoint: str, description: str, price_per_call: int, stake: int
    ) -> PendingTransaction:
        chain = self._chain
        if stake < chain.min_stake:
            raise TransactionReverted("execution reverted: Insufficient stake")
        if not endpoint:
            raise TransactionReverted("execution reverted: Endpoint cannot be empty")
        if price_per_call <= 0:
            raise TransactionReverted("execution reverted: Price must be greater than 0")

        provider = self.signer.address
        chain.debit(provider, stake, GAS_REGISTER)

        api_id = chain.next_api_id
        chain.next_api_id += 1
        chain.apis[api_id] = ApiResource(
            id=api_id,
            endpoint=endpoint,
            description=description,
            price_per_call=price_per_call,
            stake=stake,
            provider=provider,
            active=True,
            created_at=int(time.time()),
        )
        chain.provider_stakes[provider] = chain.provider_stakes.get(provider, 0) + stake

        log = chain.make_log(
            "APIRegistered",
            {"apiId": api_id, "provider": provider, "endpoint": endpoint, "stake": stake},
        )
        return chain.mine(GAS_REGISTER, [log])

    def pay_for_api_call(self, api_id: int, value: int) -> PendingTransaction:
        chain = self._chain
        api = chain.apis.get(api_id)
        if api is None or not api.active:
            raise TransactionReverted("execution reverted: API not active")
        if value < api.price_per_call:
            raise TransactionReverted("execution reverted: Insufficient payment")

        consumer = self.signer.address
        chain.debit(consumer, value, GAS_PAYMENT)
        chain.credit(api.provider, value)
        api.total_calls += 1

        log = chain.make_log(
            "APIPayment", {"apiId": api_id, "consumer": consumer, "amount": value}
        )
        return chain.mine(GAS_PAYMENT, [log])

    def decode_log(self, log: Any) -> DecodedEvent | None:
        if not isinstance(log, dict) or log.get("address") != self.address:
            return None
        name = log.get("event")
        if name not in EVENT_NAMES:
            return None
        return DecodedEvent(name=name, args=dict(log.get("args", {})), log=log)


class FakeChainClient(ChainClient):
    """
    A single-process ledger plus one marketplace contract.

    The first identity loaded becomes the contract owner and oracle unless
    given explicitly, and is credited with `initial_balance`.
    """

    def __init__(
        self,
        contract_address: str,
        initial_balance: int = Web3.to_wei(10, "ether"),
        min_stake: int = MIN_STAKE,
        owner: str | None = None,
        oracle: str | None = None,
    ) -> None:
        self.contract_address = contract_address
        self.initial_balance = initial_balance
        self.min_stake = min_stake
        self.owner_address = owner
        self.oracle_address = oracle

        self.balances: dict[str, int] = {}
        self.apis: dict[int, ApiResource] = {}
        self.provider_stakes: dict[str, int] = {}
        self.next_api_id = 1
        self.block_number = 0
        self._tx_counter = itertools.count(1)

    # ------------------------------------------------------------------
    # Ledger
    # ------------------------------------------------------------------

    def credit(self, address: str, value: int) -> None:
        self.balances[address] = self.balances.get(address, 0) + value

    def debit(self, address: str, value: int, gas: int) -> None:
        cost = value + gas * GAS_PRICE
        balance = self.balances.get(address, 0)
        if balance < cost:
            raise ChainError(
                f"insufficient funds for gas * price + value: have {balance} want {cost}"
            )
        self.balances[address] = balance - cost

    def make_log(self, event: str, args: dict) -> dict:
        return {"address": self.contract_address, "event": event, "args": args}

    def mine(self, gas_used: int, logs: list[Any]) -> FakePendingTransaction:
        self.block_number += 1
        tx_hash = "0x" + f"{next(self._tx_counter):064x}"
        receipt = Receipt(
            tx_hash=tx_hash, block_number=self.block_number, gas_used=gas_used, logs=logs
        )
        return FakePendingTransaction(receipt)

    # ------------------------------------------------------------------
    # ChainClient
    # ------------------------------------------------------------------

    def load_identity(self, private_key: str | None) -> Identity:
        account = Account.from_key(private_key) if private_key else Account.create()
        identity = Identity(address=account.address, account=account)
        self.credit(identity.address, self.initial_balance)
        if self.owner_address is None:
            self.owner_address = identity.address
        if self.oracle_address is None:
            self.oracle_address = identity.address
        return identity

    def create_identity(self) -> Identity:
        account = Account.create()
        return Identity(address=account.address, account=account)

    def get_balance(self, address: str) -> int:
        return self.balances.get(address, 0)

    def transfer(self, sender: Identity, to: str, value: int) -> PendingTransaction:
        self.debit(sender.address, value, GAS_TRANSFER)
        self.credit(to, value)
        return self.mine(GAS_TRANSFER, [])

    def contract(self, signer: Identity) -> ContractClient:
        return FakeContractClient(self, self.contract_address, signer)
