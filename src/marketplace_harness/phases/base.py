# base.py
# Shared shape of a phase: header, ordered scenarios, results, completion hint.

import logging
import sys
from abc import ABC, abstractmethod
from typing import Callable

from rich.logging import RichHandler

from marketplace_harness import display
from marketplace_harness.config import ConfigurationError, HarnessConfig
from marketplace_harness.harness import Harness

CONFIG_TIPS = ("Check CONTRACT_ADDRESS and PRIVATE_KEY are set in .env",)


class Phase(ABC):
    """
    An ordered list of scenarios run against one Harness.

    Subclasses set the text attributes and return their scenarios, in
    execution order, from scenarios(). Later scenarios may rely on state
    left by earlier ones, so order is never changed.
    """

    title = ""
    subtitle = ""
    success_message = ""
    next_step = ""
    troubleshooting: tuple[str, ...] = ()

    def __init__(self, harness: Harness) -> None:
        self.harness = harness

    def setup(self) -> None:
        """Runs before the scenarios. Failures here are fatal for the phase."""

    @abstractmethod
    def scenarios(self) -> list[Callable[[], bool]]:
        """Scenario methods, in execution order."""

    def run(self, report: bool = True) -> bool:
        """Run every scenario; True when none failed in this phase."""
        display.phase_header(self.title, self.subtitle)
        failed_before = self.harness.results.failed

        self.setup()
        for scenario in self.scenarios():
            scenario()

        ok = self.harness.results.failed == failed_before
        if report:
            self.harness.print_results()
            if ok:
                display.phase_complete(self.success_message, self.next_step)
            else:
                display.phase_incomplete(self.title)
        return ok


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=display.console, rich_tracebacks=True)],
    )


def run_phase(
    phase_cls: type[Phase],
    config: HarnessConfig | None = None,
    harness: Harness | None = None,
) -> int:
    """
    Entry-point body shared by every phase. Returns the process exit status.

    1 on a fatal error (bad config, timeout, unexpected exception) or when
    any scenario failed; 0 when everything passed.
    """
    try:
        if harness is None:
            config = config or HarnessConfig.from_env()
            configure_logging(config.log_level)
            harness = Harness(config)
        ok = phase_cls(harness).run()
    except ConfigurationError as exc:
        display.fatal(phase_cls.title, str(exc), CONFIG_TIPS)
        return 1
    except Exception as exc:
        display.fatal(phase_cls.title, str(exc) or type(exc).__name__, phase_cls.troubleshooting)
        return 1
    return 0 if ok else 1


def main_for(phase_cls: type[Phase]) -> None:
    sys.exit(run_phase(phase_cls))
