# foundation.py
# Phase 1: the absolute basics everything else depends on.
#
# Contract constants are what the deployment promised, and a plain
# registration round-trips every field of the stored API.

from typing import Callable

from web3 import Web3

from marketplace_harness import display
from marketplace_harness.phases.base import Phase, main_for

EXPECTED_MIN_STAKE = Web3.to_wei(0.1, "ether")
EXPECTED_SLASH_PERCENTAGE = 10
EXPECTED_WITHDRAWAL_DELAY = 7 * 24 * 60 * 60
PROVIDER_MIN_BALANCE = Web3.to_wei(0.2, "ether")

ENDPOINT = "https://api.weather.com/v1/current"
DESCRIPTION = "Real-time weather data API"
PRICE_PER_CALL = Web3.to_wei(0.001, "ether")
STAKE = Web3.to_wei(0.15, "ether")


class FoundationPhase(Phase):
    title = "PHASE 1: FOUNDATION TESTS"
    subtitle = "Testing the absolute basics that everything depends on"
    success_message = "Phase 1 complete! Foundation is solid."
    next_step = "Ready for Phase 2: API Registration edge cases"
    troubleshooting = (
        "Check CONTRACT_ADDRESS is set in .env",
        "Ensure contract is deployed on Sepolia",
        "Verify wallet has sufficient ETH",
        "Check RPC_URL is working",
    )

    api_id: int | None = None

    def scenarios(self) -> list[Callable[[], bool]]:
        return [self.test_contract_constants, self.test_basic_api_registration]

    # ------------------------------------------------------------------
    # Contract constants and wallet setup
    # ------------------------------------------------------------------

    def test_contract_constants(self) -> bool:
        return self.harness.run_test("Contract Constants and Setup", self._contract_constants)

    def _contract_constants(self) -> None:
        h = self.harness
        constants = h.contract1.constants()
        display.constants(constants)

        h.check(constants.min_stake == EXPECTED_MIN_STAKE, "Min stake should be 0.1 ETH")
        h.check(
            constants.slash_percentage == EXPECTED_SLASH_PERCENTAGE,
            "Slash percentage should be 10%",
        )
        h.check(
            constants.withdrawal_delay == EXPECTED_WITHDRAWAL_DELAY,
            "Withdrawal delay should be 7 days",
        )
        h.check(constants.next_api_id >= 1, "Next API ID should be at least 1")

        balance1 = h.balance_of(h.wallet1.address)
        balance2 = h.balance_of(h.wallet2.address)
        display.step("Wallet balances:")
        display.amount("Wallet 1", balance1)
        display.amount("Wallet 2", balance2)

        h.ensure_consumer_funded()

        h.check(balance1 > PROVIDER_MIN_BALANCE, "Wallet 1 needs at least 0.2 ETH for testing")

    # ------------------------------------------------------------------
    # Basic registration
    # ------------------------------------------------------------------

    def test_basic_api_registration(self) -> bool:
        return self.harness.run_test("Basic API Registration", self._basic_api_registration)

    def _basic_api_registration(self) -> None:
        h = self.harness

        display.step("Registering API:")
        display.detail("Endpoint", ENDPOINT)
        display.amount("Price per call", PRICE_PER_CALL)
        display.amount("Stake", STAKE)

        next_id_before = h.contract1.next_api_id()
        stake_before = h.contract1.provider_stakes(h.wallet1.address)
        display.step("Before registration:")
        display.detail("Next API ID", next_id_before)
        display.amount("Provider stake", stake_before)

        receipt = h.confirm(h.contract1.register_api(ENDPOINT, DESCRIPTION, PRICE_PER_CALL, STAKE))

        event = h.find_event(receipt, "APIRegistered")
        h.check(event, "APIRegistered event should be emitted")
        api_id = event.args["apiId"]
        display.detail("API registered with ID", api_id)

        api = h.contract1.get_api(api_id)
        display.api_resource(api)

        h.check(api.endpoint == ENDPOINT, "Endpoint should match")
        h.check(api.description == DESCRIPTION, "Description should match")
        h.check(api.price_per_call == PRICE_PER_CALL, "Price should match")
        h.check(api.stake == STAKE, "Stake should match")
        h.check(api.provider == h.wallet1.address, "Provider should match")
        h.check(api.active is True, "API should be active")
        h.check(api.total_calls == 0, "Total calls should be 0")
        h.check(api.successful_calls == 0, "Successful calls should be 0")

        next_id_after = h.contract1.next_api_id()
        stake_after = h.contract1.provider_stakes(h.wallet1.address)
        display.step("After registration:")
        display.detail("Next API ID", next_id_after)
        display.amount("Provider stake", stake_after)

        h.check(next_id_after == next_id_before + 1, "Next API ID should increment")
        h.check(stake_after == stake_before + STAKE, "Provider stake should increase")

        self.api_id = api_id


def main() -> None:
    main_for(FoundationPhase)


if __name__ == "__main__":
    main()
