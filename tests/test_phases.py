import pytest
from unittest.mock import MagicMock, patch
from web3 import Web3

from marketplace_harness import run
from marketplace_harness.chain import ChainTimeoutError
from marketplace_harness.config import HarnessConfig
from marketplace_harness.fake import FakeChainClient
from marketplace_harness.harness import Harness
from marketplace_harness.phases.base import Phase, run_phase
from marketplace_harness.phases.foundation import FoundationPhase
from marketplace_harness.phases.payment import PaymentPhase
from marketplace_harness.phases.registration import RegistrationEdgePhase

CONTRACT = "0x5FbDB2315678afecb367f032d93F642f64180aa3"


def _names(harness, passed=True):
    return [r.name for r in harness.results.records if r.passed is passed]

# ---------------------------------------------------------------------------
# Phase 1
# ---------------------------------------------------------------------------

def test_foundation_registers_first_api(harness, chain):
    phase = FoundationPhase(harness)
    assert phase.run() is True

    assert _names(harness) == ["Contract Constants and Setup", "Basic API Registration"]
    assert phase.api_id == 1
    assert chain.next_api_id == 2
    api = harness.contract1.get_api(1)
    assert api.active is True
    assert api.total_calls == 0
    assert api.provider == harness.wallet1.address

def test_foundation_funds_consumer(harness):
    FoundationPhase(harness).run()
    assert harness.balance_of(harness.wallet2.address) == Web3.to_wei(0.2, "ether")

def test_foundation_flags_unexpected_constants(config):
    chain = FakeChainClient(CONTRACT, min_stake=Web3.to_wei(1, "ether"))
    harness = Harness(config, chain=chain)

    assert FoundationPhase(harness).run() is False
    assert harness.results.errors[0] == "Contract Constants and Setup: Min stake should be 0.1 ETH"

# ---------------------------------------------------------------------------
# Phase 2
# ---------------------------------------------------------------------------

def test_registration_edges_after_foundation(harness, chain):
    FoundationPhase(harness).run()
    assert RegistrationEdgePhase(harness).run() is True

    assert harness.results.failed == 0
    assert "Registration Failure - Insufficient Stake" in _names(harness)
    assert "Registration Failure - Invalid Parameters" in _names(harness)
    assert chain.next_api_id == 3
    assert harness.contract1.get_api(2).endpoint == "https://api.valid.com/v1/test"

def test_accepted_low_stake_fails_the_scenario(config):
    chain = FakeChainClient(CONTRACT, min_stake=0)
    harness = Harness(config, chain=chain)

    assert run_phase(RegistrationEdgePhase, harness=harness) == 1
    assert _names(harness, passed=False) == ["Registration Failure - Insufficient Stake"]
    assert "revert but it succeeded" in harness.results.errors[0]

# ---------------------------------------------------------------------------
# Phase 3
# ---------------------------------------------------------------------------

def test_payment_uses_existing_api(harness, chain):
    FoundationPhase(harness).run()
    provider_before = harness.balance_of(harness.wallet1.address)

    phase = PaymentPhase(harness)
    assert phase.run() is True

    assert phase.test_api_id == 1
    assert _names(harness)[-2:] == ["Successful Payment Flow", "Simple Overpayment Test"]
    assert harness.contract1.get_api(1).total_calls == 2

    price = Web3.to_wei(0.001, "ether")
    extra = Web3.to_wei(0.0005, "ether")
    assert harness.balance_of(harness.wallet1.address) - provider_before == 2 * price + extra

def test_payment_registers_fallback_api_on_fresh_contract(harness, chain):
    phase = PaymentPhase(harness)
    assert phase.run() is True
    assert phase.test_api_id == 1
    assert chain.next_api_id == 2
    assert harness.results.failed == 0

def test_rejected_overpayment_is_tolerated(harness):
    FoundationPhase(harness).run()
    phase = PaymentPhase(harness)
    phase.setup()

    with patch.object(harness.contract2, "pay_for_api_call", side_effect=ValueError("rejected")):
        assert phase.test_simple_overpayment() is True

# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------

def test_missing_contract_address_exits_nonzero():
    assert run_phase(FoundationPhase, config=HarnessConfig(backend="memory")) == 1

def test_timeout_ends_phase(harness):
    pending = MagicMock()
    pending.hash = "0xabc"
    pending.wait.side_effect = ChainTimeoutError("Transaction 0xabc not confirmed after 1s")

    with patch.object(harness.contract1, "register_api", return_value=pending):
        assert run_phase(FoundationPhase, harness=harness) == 1

    assert _names(harness) == ["Contract Constants and Setup"]
    assert _names(harness, passed=False) == ["Basic API Registration"]

def test_all_phases_share_state(config):
    chain = FakeChainClient(CONTRACT)
    harness = Harness(config, chain=chain)

    assert run.run([1, 2, 3], config, harness=harness) == 0
    assert harness.results.total == 6
    assert chain.next_api_id == 3
    assert harness.contract1.get_api(1).total_calls == 2

def test_run_reports_failures_in_exit_status(config):
    harness = Harness(config, chain=FakeChainClient(CONTRACT, min_stake=0))
    assert run.run([2], config, harness=harness) == 1

def test_run_builds_memory_harness_from_config(config):
    assert run.run([1, 2, 3], config) == 0

def test_main_selects_phases():
    env = {"CONTRACT_ADDRESS": CONTRACT, "HARNESS_BACKEND": "memory"}
    with patch("marketplace_harness.config.load_dotenv"), patch.dict("os.environ", env, clear=True):
        with patch.object(run, "run", return_value=0) as runner, pytest.raises(SystemExit) as exit_info:
            run.main(["--phase", "3", "--phase", "1"])

    assert exit_info.value.code == 0
    assert runner.call_args.args[0] == [1, 3]

# ---------------------------------------------------------------------------
# Phase shape
# ---------------------------------------------------------------------------

def test_phase_requires_scenarios(harness):
    class Incomplete(Phase):
        title = "INCOMPLETE"

    with pytest.raises(TypeError):
        Incomplete(harness)

@pytest.mark.parametrize("phase_cls", [FoundationPhase, RegistrationEdgePhase, PaymentPhase])
def test_phase_text_is_immutable_and_scenarios_are_bound(harness, phase_cls):
    assert isinstance(phase_cls.troubleshooting, tuple)
    assert phase_cls.troubleshooting
    assert Phase.troubleshooting == ()

    scenarios = phase_cls(harness).scenarios()
    assert len(scenarios) == 2
    assert all(callable(scenario) for scenario in scenarios)
