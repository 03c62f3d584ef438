# harness.py
# Marketplace Integration Harness
#
# The Harness is the kernel. Phases are scripted scenarios; this class owns
# identity wiring, pass/fail bookkeeping and the verification primitives.
# Neither identity talks to the contract except through a binding built here.
#
# Control flow per scenario:
#   run_test(name) → action() → chain reads / submissions / waits
#   → check() / find_event() / expect_revert() → record pass or failure
#
# All terminal output is delegated to display.py, no formatting here.

import logging
from typing import Any, Callable

from marketplace_harness import display
from marketplace_harness.chain import (
    ChainClient,
    ChainTimeoutError,
    PendingTransaction,
    Web3ChainClient,
)
from marketplace_harness.config import HarnessConfig
from marketplace_harness.fake import FakeChainClient
from marketplace_harness.models import DecodedEvent, Receipt, RunResults

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class HarnessAssertionError(AssertionError):
    """Raised by check() and expect_revert(). Scenario-local; run_test records it."""


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _error_message(exc: BaseException) -> str:
    message = str(exc)
    return message if message else type(exc).__name__


def build_chain(config: HarnessConfig) -> ChainClient:
    """Instantiate the chain backend named by the config."""
    if config.backend == "memory":
        return FakeChainClient(config.contract_address)
    return Web3ChainClient(config.rpc_url, config.contract_address, config.tx_timeout)


# ---------------------------------------------------------------------------
# Harness
# ---------------------------------------------------------------------------


class Harness:
    """
    Two identities bound to one marketplace contract, plus result tracking.

    wallet1 / contract1: the provider, loaded from the configured key
    wallet2 / contract2: a fresh consumer, funded on demand by the provider

    Example:
        harness = Harness(HarnessConfig.from_env())
        harness.run_test("Next id is positive", lambda: harness.check(
            harness.contract1.next_api_id() >= 1, "Next API ID should be at least 1"
        ))
        harness.print_results()
    """

    def __init__(self, config: HarnessConfig, chain: ChainClient | None = None) -> None:
        config.check_required()
        self.config = config
        self.results = RunResults()

        self.chain = chain or build_chain(config)
        self.wallet1 = self.chain.load_identity(config.private_key)
        self.contract1 = self.chain.contract(self.wallet1)

        self.wallet2 = self.chain.create_identity()
        self.contract2 = self.contract1.connect(self.wallet2)

        display.banner(
            self.contract1.address, self.wallet1.address, self.wallet2.address, config.backend
        )

    # ------------------------------------------------------------------
    # Scenario execution
    # ------------------------------------------------------------------

    def run_test(self, name: str, action: Callable[[], Any]) -> bool:
        """
        Execute one named scenario and record its outcome.

        Any exception raised by `action` marks the scenario failed and is
        swallowed so later scenarios still run. A ChainTimeoutError is
        recorded and then re-raised: a node that stops confirming ends the run.
        """
        display.test_start(name)
        try:
            action()
        except ChainTimeoutError as exc:
            self._fail(name, exc)
            raise
        except Exception as exc:
            self._fail(name, exc)
            return False

        display.test_passed(name)
        self.results.record_pass(name)
        return True

    def _fail(self, name: str, exc: BaseException) -> None:
        message = _error_message(exc)
        logger.debug("scenario %r failed", name, exc_info=exc)
        display.test_failed(name, message)
        self.results.record_failure(name, message)

    # ------------------------------------------------------------------
    # Verification primitives
    # ------------------------------------------------------------------

    def check(self, condition: Any, message: str) -> None:
        if not condition:
            raise HarnessAssertionError(message)

    def find_event(self, receipt: Receipt, event_name: str) -> DecodedEvent | None:
        """
        Return the first log in `receipt` that decodes to `event_name`.

        Logs the contract binding does not recognise are skipped.
        """
        for log in receipt.logs:
            event = self.contract1.decode_log(log)
            if event is not None and event.name == event_name:
                return event
        return None

    def expect_revert(
        self, operation: Callable[[], Any], expected_message: str | None = None
    ) -> bool:
        """
        Run `operation` and require it to fail.

        Success raises HarnessAssertionError. Failure is the expected outcome;
        a reason that does not contain `expected_message` (case-insensitive)
        only produces a warning, since revert strings vary by node and RPC.
        """
        try:
            operation()
        except ChainTimeoutError:
            raise
        except Exception as exc:
            message = _error_message(exc)
            display.revert_observed(message)
            if expected_message and expected_message.lower() not in message.lower():
                display.revert_mismatch(expected_message, message)
            return True

        raise HarnessAssertionError("Expected transaction to revert but it succeeded")

    # ------------------------------------------------------------------
    # Chain conveniences
    # ------------------------------------------------------------------

    def confirm(self, pending: PendingTransaction) -> Receipt:
        """Wait for a submitted transaction, reporting hash and block."""
        display.tx_sent(pending.hash)
        receipt = pending.wait()
        display.tx_confirmed(receipt)
        return receipt

    def balance_of(self, address: str) -> int:
        return self.chain.get_balance(address)

    def ensure_consumer_funded(self) -> int:
        """Top up wallet2 from wallet1 when it holds less than consumer_min_balance."""
        balance = self.chain.get_balance(self.wallet2.address)
        if balance >= self.config.consumer_min_balance:
            return balance

        display.funding(self.wallet2.address, self.config.consumer_funding)
        pending = self.chain.transfer(
            self.wallet1, self.wallet2.address, self.config.consumer_funding
        )
        logger.info("funding consumer %s via %s", self.wallet2.address, pending.hash)
        self.confirm(pending)

        balance = self.chain.get_balance(self.wallet2.address)
        display.funded(balance)
        return balance

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def print_results(self) -> None:
        display.results(self.results)
