import pytest
from unittest.mock import MagicMock
from eth_abi import encode
from eth_account import Account
from hexbytes import HexBytes
from web3 import Web3
from web3.datastructures import AttributeDict
from web3.exceptions import ContractLogicError, TimeExhausted

from marketplace_harness.chain import (
    ChainTimeoutError,
    TransactionReverted,
    Web3ChainClient,
    Web3ContractClient,
    Web3PendingTransaction,
)
from marketplace_harness.harness import Harness
from marketplace_harness.models import Identity, Receipt

CONTRACT = "0x5FbDB2315678afecb367f032d93F642f64180aa3"

REGISTERED_TOPIC = Web3.keccak(text="APIRegistered(uint256,address,string,uint256)")
PAYMENT_TOPIC = Web3.keccak(text="APIPayment(uint256,address,uint256)")
TX_HASH = HexBytes(b"\x11" * 32)


@pytest.fixture
def signer():
    account = Account.create()
    return Identity(address=account.address, account=account)


@pytest.fixture
def client(signer):
    chain = Web3ChainClient("http://127.0.0.1:8545", CONTRACT)
    return chain.contract(signer)


def _word(value: int) -> HexBytes:
    return HexBytes(value.to_bytes(32, "big"))


def _address_topic(address: str) -> HexBytes:
    return HexBytes(b"\x00" * 12 + HexBytes(address))


def _log(address, topics, data=b""):
    return AttributeDict(
        {
            "address": address,
            "topics": topics,
            "data": HexBytes(data),
            "logIndex": 0,
            "transactionIndex": 0,
            "transactionHash": TX_HASH,
            "blockHash": HexBytes(b"\x22" * 32),
            "blockNumber": 5,
        }
    )

# ---------------------------------------------------------------------------
# Event decoding
# ---------------------------------------------------------------------------

def test_decodes_api_registered(client, signer):
    stake = Web3.to_wei(0.15, "ether")
    log = _log(
        CONTRACT,
        [REGISTERED_TOPIC, _word(4), _address_topic(signer.address)],
        encode(["string", "uint256"], ["https://api.weather.com/v1/current", stake]),
    )

    event = client.decode_log(log)
    assert event.name == "APIRegistered"
    assert event.args["apiId"] == 4
    assert event.args["provider"] == signer.address
    assert event.args["endpoint"] == "https://api.weather.com/v1/current"
    assert event.args["stake"] == stake
    assert event.log is log

def test_decodes_api_payment_with_lowercase_address(client, signer):
    log = _log(
        CONTRACT.lower(),
        [PAYMENT_TOPIC, _word(1), _address_topic(signer.address)],
        encode(["uint256"], [1000]),
    )
    event = client.decode_log(log)
    assert event.name == "APIPayment"
    assert event.args["consumer"] == signer.address
    assert event.args["amount"] == 1000

def test_log_from_other_contract_is_ignored(client, signer):
    log = _log(
        "0x000000000000000000000000000000000000dEaD",
        [PAYMENT_TOPIC, _word(1), _address_topic(signer.address)],
        encode(["uint256"], [1000]),
    )
    assert client.decode_log(log) is None

def test_unknown_topic_is_ignored(client):
    transfer = Web3.keccak(text="Transfer(address,address,uint256)")
    assert client.decode_log(_log(CONTRACT, [transfer])) is None
    assert client.decode_log(_log(CONTRACT, [])) is None

def test_known_topic_with_missing_indexed_topics_is_skipped(client):
    assert client.decode_log(_log(CONTRACT, [REGISTERED_TOPIC], b"\x01")) is None

def test_known_topic_with_truncated_data_is_skipped(client, signer):
    log = _log(CONTRACT, [PAYMENT_TOPIC, _word(1), _address_topic(signer.address)], b"\x01")
    assert client.decode_log(log) is None

def test_find_event_skips_undecodable_web3_logs(client, signer):
    broken = _log(CONTRACT, [REGISTERED_TOPIC], b"\x01")
    good = _log(
        CONTRACT,
        [PAYMENT_TOPIC, _word(2), _address_topic(signer.address)],
        encode(["uint256"], [7]),
    )
    harness = MagicMock()
    harness.contract1 = client
    receipt = Receipt(tx_hash="0x01", block_number=5, gas_used=21000, logs=[broken, good])

    assert Harness.find_event(harness, receipt, "APIRegistered") is None
    assert Harness.find_event(harness, receipt, "APIPayment").args["amount"] == 7

def test_connect_keeps_address_and_swaps_signer(client):
    other = Account.create()
    bound = client.connect(Identity(address=other.address, account=other))
    assert bound.address == client.address == CONTRACT
    assert bound.signer.address == other.address

# ---------------------------------------------------------------------------
# Confirmation
# ---------------------------------------------------------------------------

def _raw_receipt(status):
    return {
        "transactionHash": TX_HASH,
        "blockNumber": 9,
        "gasUsed": 62000,
        "status": status,
        "logs": [],
    }

def test_wait_returns_receipt():
    w3 = MagicMock()
    w3.eth.wait_for_transaction_receipt.return_value = _raw_receipt(1)

    receipt = Web3PendingTransaction(w3, Web3.to_hex(TX_HASH), timeout=3).wait()

    assert receipt.tx_hash == Web3.to_hex(TX_HASH)
    assert receipt.block_number == 9
    assert receipt.gas_used == 62000
    w3.eth.wait_for_transaction_receipt.assert_called_once_with(Web3.to_hex(TX_HASH), timeout=3)

def test_wait_raises_on_reverted_receipt():
    w3 = MagicMock()
    w3.eth.wait_for_transaction_receipt.return_value = _raw_receipt(0)

    with pytest.raises(TransactionReverted, match="reverted in block 9"):
        Web3PendingTransaction(w3, "0xabc", timeout=3).wait()

def test_wait_timeout_becomes_chain_timeout():
    w3 = MagicMock()
    w3.eth.wait_for_transaction_receipt.side_effect = TimeExhausted("too slow")

    with pytest.raises(ChainTimeoutError, match="0xabc not confirmed after 3s"):
        Web3PendingTransaction(w3, "0xabc", timeout=3).wait()

# ---------------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------------

def _mock_chain():
    chain = MagicMock()
    chain.w3.eth.get_transaction_count.return_value = 3
    return chain

def test_estimation_revert_becomes_transaction_reverted(signer):
    chain = _mock_chain()
    client = Web3ContractClient(chain, CONTRACT, signer)
    call = MagicMock()
    call.build_transaction.side_effect = ContractLogicError("execution reverted: Insufficient stake")

    with pytest.raises(TransactionReverted, match="Insufficient stake"):
        client._transact(call, 1)
    chain.send_signed.assert_not_called()

def test_transact_signs_with_bound_signer(signer):
    chain = _mock_chain()
    client = Web3ContractClient(chain, CONTRACT, signer)
    call = MagicMock()
    call.build_transaction.return_value = {"to": CONTRACT, "data": "0x"}

    pending = client._transact(call, 500)

    call.build_transaction.assert_called_once_with(
        {"from": signer.address, "value": 500, "nonce": 3}
    )
    chain.w3.eth.get_transaction_count.assert_called_once_with(signer.address, "pending")
    chain.send_signed.assert_called_once_with(signer, {"to": CONTRACT, "data": "0x"})
    assert pending is chain.send_signed.return_value
