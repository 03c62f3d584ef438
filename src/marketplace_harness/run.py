# run.py
# Entry point. Config and wiring only, no test logic lives here.
#
# Runs the selected phases in order against one shared Harness, so later
# phases see the state earlier ones created, then prints one summary.

import argparse
import sys

from marketplace_harness import display
from marketplace_harness.config import ConfigurationError, HarnessConfig
from marketplace_harness.harness import Harness
from marketplace_harness.phases.base import CONFIG_TIPS, Phase, configure_logging
from marketplace_harness.phases.foundation import FoundationPhase
from marketplace_harness.phases.payment import PaymentPhase
from marketplace_harness.phases.registration import RegistrationEdgePhase

PHASES: dict[int, type[Phase]] = {
    1: FoundationPhase,
    2: RegistrationEdgePhase,
    3: PaymentPhase,
}


def run(phases: list[int], config: HarnessConfig, harness: Harness | None = None) -> int:
    try:
        harness = harness or Harness(config)
    except ConfigurationError as exc:
        display.fatal("Setup", str(exc), CONFIG_TIPS)
        return 1
    except Exception as exc:
        display.fatal("Setup", str(exc) or type(exc).__name__, ("Check RPC_URL is working",))
        return 1

    for number in phases:
        phase_cls = PHASES[number]
        try:
            phase_cls(harness).run(report=False)
        except Exception as exc:
            harness.print_results()
            display.fatal(phase_cls.title, str(exc) or type(exc).__name__, phase_cls.troubleshooting)
            return 1

    harness.print_results()
    return 0 if harness.results.failed == 0 else 1


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Run marketplace integration phases in order.")
    parser.add_argument(
        "--phase",
        type=int,
        action="append",
        choices=sorted(PHASES),
        help="Phase number to run; repeat for several. Defaults to all.",
    )
    args = parser.parse_args(argv)

    try:
        config = HarnessConfig.from_env()
    except ConfigurationError as exc:
        display.fatal("Setup", str(exc), CONFIG_TIPS)
        sys.exit(1)

    configure_logging(config.log_level)
    sys.exit(run(sorted(set(args.phase or PHASES)), config))


if __name__ == "__main__":
    main()
