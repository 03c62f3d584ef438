# chain.py
# Chain client capability consumed by the harness, and its web3.py backend.
#
# ChainClient     : identities, balances, plain value transfers
# ContractClient  : one method per marketplace operation, bound to a signer
# PendingTransaction : submitted, not yet confirmed; wait() blocks for the receipt
#
# Submission and confirmation are separate calls: a hash exists as soon as
# a transaction is accepted by the node, finality only after wait().

import logging
from abc import ABC, abstractmethod
from typing import Any

from eth_abi.exceptions import DecodingError
from eth_account import Account
from eth_utils import event_abi_to_log_topic
from hexbytes import HexBytes
from web3 import Web3
from web3.exceptions import ContractLogicError, LogTopicError, MismatchedABI, TimeExhausted

from marketplace_harness.abi import CONTRACT_ABI
from marketplace_harness.models import (
    ApiResource,
    ContractConstants,
    DecodedEvent,
    Identity,
    Receipt,
)

logger = logging.getLogger(__name__)

TRANSFER_GAS = 21_000


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ChainError(Exception):
    """Base class for failures reported by the chain client."""


class TransactionReverted(ChainError):
    """Raised when the contract rejects a transaction, at submission or on receipt."""


class ChainTimeoutError(ChainError):
    """Raised when a confirmation wait exceeds its bound. Always fatal."""


# ---------------------------------------------------------------------------
# Interfaces
# ---------------------------------------------------------------------------


class PendingTransaction(ABC):
    """A submitted transaction. The hash is known; the receipt is not."""

    def __init__(self, tx_hash: str) -> None:
        self.hash = tx_hash

    @abstractmethod
    def wait(self) -> Receipt:
        """Block until the transaction is mined. Raises TransactionReverted on status 0."""


class ContractClient(ABC):
    """The marketplace contract, bound to one signer."""

    def __init__(self, address: str, signer: Identity) -> None:
        self.address = address
        self.signer = signer

    @abstractmethod
    def connect(self, signer: Identity) -> "ContractClient":
        """Same contract and ABI, different signer."""

    # Views

    @abstractmethod
    def min_stake(self) -> int: ...

    @abstractmethod
    def slash_percentage(self) -> int: ...

    @abstractmethod
    def withdrawal_delay(self) -> int: ...

    @abstractmethod
    def next_api_id(self) -> int: ...

    @abstractmethod
    def oracle(self) -> str: ...

    @abstractmethod
    def owner(self) -> str: ...

    @abstractmethod
    def provider_stakes(self, address: str) -> int: ...

    @abstractmethod
    def get_api(self, api_id: int) -> ApiResource: ...

    def constants(self) -> ContractConstants:
        return ContractConstants(
            min_stake=self.min_stake(),
            slash_percentage=self.slash_percentage(),
            withdrawal_delay=self.withdrawal_delay(),
            next_api_id=self.next_api_id(),
            oracle=self.oracle(),
            owner=self.owner(),
        )

    # Writes

    @abstractmethod
    def register_api(
        self, endpoint: str, description: str, price_per_call: int, stake: int
    ) -> PendingTransaction: ...

    @abstractmethod
    def pay_for_api_call(self, api_id: int, value: int) -> PendingTransaction: ...

    # Events

    @abstractmethod
    def decode_log(self, log: Any) -> DecodedEvent | None:
        """Decode a log emitted by this contract. None for anything else."""


class ChainClient(ABC):
    @abstractmethod
    def load_identity(self, private_key: str | None) -> Identity: ...

    @abstractmethod
    def create_identity(self) -> Identity: ...

    @abstractmethod
    def get_balance(self, address: str) -> int: ...

    @abstractmethod
    def transfer(self, sender: Identity, to: str, value: int) -> PendingTransaction: ...

    @abstractmethod
    def contract(self, signer: Identity) -> ContractClient: ...


# ---------------------------------------------------------------------------
# web3.py backend
# ---------------------------------------------------------------------------


def _to_receipt(raw: Any) -> Receipt:
    return Receipt(
        tx_hash=Web3.to_hex(raw["transactionHash"]),
        block_number=raw["blockNumber"],
        gas_used=raw["gasUsed"],
        status=raw.get("status", 1),
        logs=list(raw.get("logs", [])),
    )


class Web3PendingTransaction(PendingTransaction):
    def __init__(self, w3: Web3, tx_hash: str, timeout: float) -> None:
        super().__init__(tx_hash)
        self._w3 = w3
        self._timeout = timeout

    def wait(self) -> Receipt:
        logger.debug("waiting up to %ss for %s", self._timeout, self.hash)
        try:
            raw = self._w3.eth.wait_for_transaction_receipt(self.hash, timeout=self._timeout)
        except TimeExhausted as exc:
            raise ChainTimeoutError(
                f"Transaction {self.hash} not confirmed after {self._timeout}s"
            ) from exc

        receipt = _to_receipt(raw)
        if receipt.status == 0:
            raise TransactionReverted(
                f"Transaction {self.hash} reverted in block {receipt.block_number}"
            )
        return receipt


class Web3ContractClient(ContractClient):
    def __init__(self, chain: "Web3ChainClient", address: str, signer: Identity) -> None:
        super().__init__(Web3.to_checksum_address(address), signer)
        self._chain = chain
        self._contract = chain.w3.eth.contract(address=self.address, abi=CONTRACT_ABI)
        self._event_topics: dict[bytes, str] = {
            event_abi_to_log_topic(entry): entry["name"]
            for entry in CONTRACT_ABI
            if entry["type"] == "event"
        }

    def connect(self, signer: Identity) -> "Web3ContractClient":
        return Web3ContractClient(self._chain, self.address, signer)

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def min_stake(self) -> int:
        return self._contract.functions.MIN_STAKE().call()

    def slash_percentage(self) -> int:
        return self._contract.functions.SLASH_PERCENTAGE().call()

    def withdrawal_delay(self) -> int:
        return self._contract.functions.WITHDRAWAL_DELAY().call()

    def next_api_id(self) -> int:
        return self._contract.functions.nextApiId().call()

    def oracle(self) -> str:
        return self._contract.functions.oracle().call()

    def owner(self) -> str:
        return self._contract.functions.owner().call()

    def provider_stakes(self, address: str) -> int:
        return self._contract.functions.providerStakes(address).call()

    def get_api(self, api_id: int) -> ApiResource:
        (
            id_,
            endpoint,
            description,
            price_per_call,
            stake,
            provider,
            active,
            total_calls,
            successful_calls,
            created_at,
        ) = self._contract.functions.getAPI(api_id).call()
        return ApiResource(
            id=id_,
            endpoint=endpoint,
            description=description,
            price_per_call=price_per_call,
            stake=stake,
            provider=provider,
            active=active,
            total_calls=total_calls,
            successful_calls=successful_calls,
            created_at=created_at,
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _transact(self, call: Any, value: int) -> PendingTransaction:
        """Estimate, sign and submit a contract call. Reverts surface here as TransactionReverted."""
        try:
            tx = call.build_transaction(
                {
                    "from": self.signer.address,
                    "value": value,
                    "nonce": self._chain.w3.eth.get_transaction_count(self.signer.address, "pending"),
                }
            )
        except ContractLogicError as exc:
            raise TransactionReverted(exc.message or str(exc)) from exc
        return self._chain.send_signed(self.signer, tx)

    def register_api(
        self, endpoint: str, description: str, price_per_call: int, stake: int
    ) -> PendingTransaction:
        call = self._contract.functions.registerAPI(endpoint, description, price_per_call)
        return self._transact(call, stake)

    def pay_for_api_call(self, api_id: int, value: int) -> PendingTransaction:
        return self._transact(self._contract.functions.payForAPICall(api_id), value)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def decode_log(self, log: Any) -> DecodedEvent | None:
        address = log.get("address")
        if address is None or str(address).lower() != self.address.lower():
            return None

        topics = log.get("topics") or []
        if not topics:
            return None
        name = self._event_topics.get(bytes(HexBytes(topics[0])))
        if name is None:
            return None

        try:
            data = getattr(self._contract.events, name)().process_log(log)
        except (LogTopicError, MismatchedABI, DecodingError) as exc:
            # Matching topic but malformed body: skipped like any foreign log.
            logger.debug("skipping undecodable %s log: %s", name, exc)
            return None
        return DecodedEvent(name=name, args=dict(data["args"]), log=log)


class Web3ChainClient(ChainClient):
    def __init__(self, rpc_url: str, contract_address: str, tx_timeout: float = 120.0) -> None:
        self.w3 = Web3(Web3.HTTPProvider(rpc_url))
        self.contract_address = contract_address
        self.tx_timeout = tx_timeout

    def load_identity(self, private_key: str | None) -> Identity:
        account = Account.from_key(private_key)
        return Identity(address=account.address, account=account)

    def create_identity(self) -> Identity:
        account = Account.create()
        return Identity(address=account.address, account=account)

    def get_balance(self, address: str) -> int:
        return self.w3.eth.get_balance(address)

    def send_signed(self, sender: Identity, tx: dict) -> PendingTransaction:
        signed = sender.account.sign_transaction(tx)
        tx_hash = Web3.to_hex(self.w3.eth.send_raw_transaction(signed.raw_transaction))
        logger.debug("submitted %s from %s", tx_hash, sender.address)
        return Web3PendingTransaction(self.w3, tx_hash, self.tx_timeout)

    def transfer(self, sender: Identity, to: str, value: int) -> PendingTransaction:
        tx = {
            "from": sender.address,
            "to": to,
            "value": value,
            "gas": TRANSFER_GAS,
            "gasPrice": self.w3.eth.gas_price,
            "nonce": self.w3.eth.get_transaction_count(sender.address, "pending"),
            "chainId": self.w3.eth.chain_id,
        }
        return self.send_signed(sender, tx)

    def contract(self, signer: Identity) -> ContractClient:
        return Web3ContractClient(self, self.contract_address, signer)
