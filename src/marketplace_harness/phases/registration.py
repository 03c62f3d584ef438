# registration.py
# Phase 2: registration failures and boundary conditions.
#
# Each rejected registration must leave nextApiId where it was. A valid
# registration afterwards guards against the checks being over-eager.

from typing import Callable

from web3 import Web3

from marketplace_harness import display
from marketplace_harness.phases.base import Phase, main_for

PRICE_PER_CALL = Web3.to_wei(0.001, "ether")
INSUFFICIENT_STAKE = Web3.to_wei(0.05, "ether")
VALID_STAKE = Web3.to_wei(0.15, "ether")

VALID_ENDPOINT = "https://api.valid.com/v1/test"
VALID_PRICE = Web3.to_wei(0.002, "ether")


class RegistrationEdgePhase(Phase):
    title = "PHASE 2: REGISTRATION EDGE CASES"
    subtitle = "Testing registration failures and boundary conditions"
    success_message = "Phase 2 complete! Registration security verified."
    next_step = "Ready for Phase 3: Payment system tests"
    troubleshooting = (
        "Ensure Phase 1 passed successfully",
        "Check wallet has sufficient ETH for multiple transactions",
        "Verify contract is still responsive",
    )

    def scenarios(self) -> list[Callable[[], bool]]:
        return [self.test_insufficient_stake, self.test_invalid_parameters]

    def _register(self, endpoint: str, description: str, price: int, stake: int):
        """Submit and wait; used inside expect_revert so either step may fail."""
        h = self.harness
        return h.confirm(h.contract1.register_api(endpoint, description, price, stake))

    # ------------------------------------------------------------------
    # Stake requirement
    # ------------------------------------------------------------------

    def test_insufficient_stake(self) -> bool:
        return self.harness.run_test(
            "Registration Failure - Insufficient Stake", self._insufficient_stake
        )

    def _insufficient_stake(self) -> None:
        h = self.harness
        display.step("Testing stake requirement enforcement…")

        min_stake = h.contract1.min_stake()
        display.amount("Required", min_stake)
        display.amount("Provided", INSUFFICIENT_STAKE)

        next_id_before = h.contract1.next_api_id()
        h.expect_revert(
            lambda: self._register(
                "https://api.lowstake.com/v1/data",
                "API with insufficient stake",
                PRICE_PER_CALL,
                INSUFFICIENT_STAKE,
            ),
            "insufficient stake",
        )

        next_id_after = h.contract1.next_api_id()
        display.detail("Next API ID after failed registration", next_id_after)
        h.check(
            next_id_after == next_id_before,
            "Next API ID should not change after failed registration",
        )
        display.note("Stake requirement properly enforced")

    # ------------------------------------------------------------------
    # Parameter validation
    # ------------------------------------------------------------------

    def test_invalid_parameters(self) -> bool:
        return self.harness.run_test(
            "Registration Failure - Invalid Parameters", self._invalid_parameters
        )

    def _invalid_parameters(self) -> None:
        h = self.harness
        display.step("Testing parameter validation…")
        next_id_before = h.contract1.next_api_id()

        display.step("Testing empty endpoint…")
        h.expect_revert(
            lambda: self._register("", "Valid description", PRICE_PER_CALL, VALID_STAKE),
            "endpoint",
        )

        display.step("Testing zero price…")
        h.expect_revert(
            lambda: self._register("https://api.zeroprice.com", "Zero price API", 0, VALID_STAKE),
            "price",
        )

        h.check(
            h.contract1.next_api_id() == next_id_before,
            "Rejected registrations should not consume an API ID",
        )

        display.step("Testing valid registration still works…")
        receipt = self._register(
            VALID_ENDPOINT, "Valid test API for regression", VALID_PRICE, VALID_STAKE
        )

        event = h.find_event(receipt, "APIRegistered")
        h.check(event, "APIRegistered event should be emitted for valid registration")
        api_id = event.args["apiId"]
        display.detail("Valid API registered with ID", api_id)

        api = h.contract1.get_api(api_id)
        h.check(api.endpoint == VALID_ENDPOINT, "Endpoint should match")
        h.check(api.price_per_call == VALID_PRICE, "Price should match")
        h.check(api.active is True, "API should be active")
        display.note("Parameter validation working correctly")


def main() -> None:
    main_for(RegistrationEdgePhase)


if __name__ == "__main__":
    main()
