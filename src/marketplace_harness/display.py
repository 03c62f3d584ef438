# display.py
# All terminal output for the marketplace integration harness.
#
# This module owns presentation entirely. harness.py and the phases never
# format strings; they call named functions here. Swap this file to change
# the entire UI.
#
# Colour language:
#   cyan: phase / scenario scaffolding
#   blue: transactions and confirmations
#   yellow: warnings, tolerated mismatches, funding
#   green: success / confirmed
#   red: failures and fatal halts
#   dim: contract state readouts

from decimal import Decimal
from typing import Sequence

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text
from web3 import Web3

from marketplace_harness.models import ApiResource, ContractConstants, Receipt, RunResults

console = Console()

SECONDS_PER_DAY = 86_400


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _label(tag: str, color: str) -> Text:
    t = Text()
    t.append(f" {tag} ", style=f"bold white on {color}")
    return t


def _mono(value: str, max_len: int = 120) -> str:
    """Truncate and escape dynamic text so it is never parsed as markup."""
    if len(value) > max_len:
        return escape(value[:max_len]) + "…"
    return escape(value)


def ether(wei: int) -> str:
    value = Web3.from_wei(wei, "ether")
    if isinstance(value, Decimal):
        value = value.normalize()
    return f"{value:f} ETH"


# ---------------------------------------------------------------------------
# Run entry
# ---------------------------------------------------------------------------


def banner(contract: str, provider: str, consumer: str, backend: str) -> None:
    console.print()
    console.print(
        Panel.fit(
            "[bold cyan]API Marketplace Integration Harness[/bold cyan]\n"
            f"[dim]Backend  :[/dim] [white]{_mono(backend)}[/white]\n\n"
            f"[dim]Contract :[/dim] [white]{_mono(contract)}[/white]\n"
            f"[dim]Wallet 1 :[/dim] [white]{provider}[/white] [dim](provider)[/dim]\n"
            f"[dim]Wallet 2 :[/dim] [white]{consumer}[/white] [dim](consumer)[/dim]",
            border_style="cyan",
            padding=(1, 4),
        )
    )


def phase_header(title: str, subtitle: str) -> None:
    console.print()
    console.print(Rule(f"[bold cyan]{title}[/bold cyan]", style="cyan"))
    console.print(f"[dim]{subtitle}[/dim]")


def setup_step(message: str) -> None:
    console.print()
    console.print(_label("SETUP", "cyan"), f"[cyan] {message}[/cyan]")


# ---------------------------------------------------------------------------
# Scenarios
# ---------------------------------------------------------------------------


def test_start(name: str) -> None:
    console.print()
    console.print(f"[bold cyan]🧪 {name}…[/bold cyan]")


def test_passed(name: str) -> None:
    console.print(f"[bold green]✓ PASSED:[/bold green] [white]{name}[/white]")


def test_failed(name: str, error: str) -> None:
    console.print(f"[bold red]✗ FAILED:[/bold red] [white]{name}[/white]")
    console.print(f"   [red]Error:[/red] [white]{_mono(error, 400)}[/white]")


def step(message: str) -> None:
    console.print(f"   [cyan]›[/cyan] {message}")


def detail(label: str, value: object) -> None:
    console.print(f"      [dim]{label}:[/dim] [white]{_mono(str(value))}[/white]")


def amount(label: str, wei: int) -> None:
    detail(label, ether(wei))


def note(message: str) -> None:
    console.print(f"   [green]✓[/green] {message}")


def warning(message: str) -> None:
    console.print(f"   [yellow]⚠  {_mono(message, 400)}[/yellow]")


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------


def tx_sent(tx_hash: str) -> None:
    console.print(f"   [blue]⏳ Transaction sent:[/blue] [dim]{tx_hash}[/dim]")
    console.print("   [blue]⏳ Waiting for confirmation…[/blue]")


def tx_confirmed(receipt: Receipt) -> None:
    console.print(
        f"   [bold blue]✓ Confirmed in block:[/bold blue] [white]{receipt.block_number}[/white]"
        f"  [dim]gas used {receipt.gas_used:,}[/dim]"
    )


def revert_observed(error: str) -> None:
    console.print(f"   [green]✓ Transaction properly reverted:[/green] [dim]{_mono(error, 200)}[/dim]")


def revert_mismatch(expected: str, actual: str) -> None:
    warning(f'Expected "{expected}" but got "{actual}"')


def funding(address: str, value: int) -> None:
    console.print(f"   [yellow]💸 Funding {address} with {ether(value)}…[/yellow]")


def funded(balance: int) -> None:
    console.print(f"   [green]✓ Wallet 2 funded! New balance: {ether(balance)}[/green]")


# ---------------------------------------------------------------------------
# Contract state
# ---------------------------------------------------------------------------


def constants(values: ContractConstants) -> None:
    table = Table(box=box.SIMPLE, show_header=False, padding=(0, 1))
    table.add_column("Field", style="dim")
    table.add_column("Value", style="white")
    table.add_row("Min stake", ether(values.min_stake))
    table.add_row("Slash %", f"{values.slash_percentage}%")
    table.add_row("Withdrawal delay", f"{values.withdrawal_delay / SECONDS_PER_DAY:g} days")
    table.add_row("Next API ID", str(values.next_api_id))
    table.add_row("Oracle", _mono(values.oracle))
    table.add_row("Owner", _mono(values.owner))
    console.print(Panel(table, title="[dim]CONTRACT DETAILS[/dim]", border_style="dim"))


def api_resource(api: ApiResource) -> None:
    table = Table(box=box.SIMPLE, show_header=False, padding=(0, 1))
    table.add_column("Field", style="dim")
    table.add_column("Value", style="white")
    table.add_row("ID", str(api.id))
    table.add_row("Endpoint", _mono(api.endpoint))
    table.add_row("Description", _mono(api.description))
    table.add_row("Price", ether(api.price_per_call))
    table.add_row("Stake", ether(api.stake))
    table.add_row("Provider", _mono(api.provider))
    table.add_row("Active", str(api.active))
    table.add_row("Total calls", str(api.total_calls))
    table.add_row("Successful calls", str(api.successful_calls))
    console.print(Panel(table, title="[dim]API DETAILS[/dim]", border_style="dim"))


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


def results(run: RunResults) -> None:
    console.print()
    color = "green" if run.failed == 0 else "red"
    console.print(
        f"[bold {color}]📊 Results: {run.passed}/{run.total} passed[/bold {color}]"
    )
    if run.failed:
        console.print()
        console.print("[bold red]✗ Failures:[/bold red]")
        for error in run.errors:
            console.print(f"  [red]•[/red] {_mono(error, 400)}")


def phase_complete(message: str, next_step: str) -> None:
    console.print()
    console.print(
        Panel(
            f"[bold green]{message}[/bold green]\n[green]{next_step}[/green]",
            title=_label("COMPLETE ✓", "green"),
            border_style="green",
            padding=(0, 2),
        )
    )


def phase_incomplete(title: str) -> None:
    console.print()
    console.print(f"[bold yellow]⚠  Fix {title} issues before proceeding[/bold yellow]")


def fatal(title: str, error: str, troubleshooting: Sequence[str]) -> None:
    body = f"[bold red]{title} failed:[/bold red] [white]{_mono(error, 400)}[/white]"
    if troubleshooting:
        body += "\n\n[bold white]Troubleshooting:[/bold white]\n" + "\n".join(
            f"[white]{i}. {tip}[/white]" for i, tip in enumerate(troubleshooting, start=1)
        )
    console.print()
    console.print(
        Panel(
            body,
            title=_label("HALT", "red"),
            border_style="red",
            padding=(0, 2),
        )
    )
    console.print()
