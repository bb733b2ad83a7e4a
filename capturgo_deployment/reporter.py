import json
from enum import Enum
from pathlib import Path
from typing import Any, List, NamedTuple, Optional

import click
from eth_utils import to_hex
from web3 import Web3

from capturgo_deployment.constants import LOCAL_NETWORKS, VERIFY_COMMAND


class StageStatus(Enum):
    STARTED = "started"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class StageEvent(NamedTuple):
    stage_name: str
    status: StageStatus
    detail: str = ""


_STATUS_STYLE = {
    StageStatus.STARTED: ("ℹ", "cyan"),
    StageStatus.SUCCEEDED: ("✓", "green"),
    StageStatus.FAILED: ("✗", "red"),
}


def _format_arg(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return to_hex(value)
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_format_arg(v) for v in value) + "]"
    return str(value)


def verification_commands(ledger) -> List[str]:
    """One explorer verification command per deployed unit, in deployment order."""
    commands = list()
    for name, address in ledger.contracts.items():
        command = VERIFY_COMMAND.format(network=ledger.network.name, address=address)
        args = " ".join(_format_arg(arg) for arg in ledger.constructor_args(name))
        commands.append(f"{command} {args}" if args else command)
    return commands


class Reporter:
    """Human-facing progress output. Observes the run; never alters it."""

    def __init__(self, color: Optional[bool] = None):
        self.color = color
        self.events: List[StageEvent] = list()

    def _echo(self, message: str = "", **style) -> None:
        click.secho(message, color=self.color, **style)

    def section(self, title: str) -> None:
        self._echo(f"\n═══ {title} ═══\n", fg="blue", bold=True)

    def stage(self, event: StageEvent) -> None:
        self.events.append(event)
        symbol, colour = _STATUS_STYLE[event.status]
        message = f"{symbol} {event.stage_name}"
        if event.detail:
            message = f"{message}: {event.detail}"
        self._echo(message, fg=colour, err=event.status is StageStatus.FAILED)

    def preamble(
        self,
        network,
        deployer: str,
        balance: int,
        plan_name: str,
        record_path: Optional[Path] = None,
    ) -> None:
        self.section(f"{plan_name} deployment")
        self._echo(f"Network: {network.name} (Chain ID: {network.chain_id})", fg="cyan")
        self._echo(f"Deployer: {deployer}", fg="cyan")
        self._echo(f"Balance: {Web3.from_wei(balance, 'ether')} ETH", fg="cyan")
        if record_path is not None:
            self._echo(f"Record: {record_path}", fg="cyan")

    def summary(self, ledger, record_path: Optional[Path] = None) -> None:
        self.section("Deployment Complete!")
        self._echo("Contract Addresses:", bold=True)
        width = max((len(name) for name in ledger.contracts), default=0)
        for name, address in ledger.contracts.items():
            self._echo(f"  {name.ljust(width)}  {address}", fg="yellow")
        if ledger.configuration:
            self._echo("\nConfiguration:", bold=True)
            for key, value in ledger.configuration.items():
                self._echo(f"  {key}: {value}")
        if record_path is not None:
            self._echo(f"\nDeployment info saved to {record_path}", fg="green")

        if ledger.network.name not in LOCAL_NETWORKS:
            self._echo("\nTo verify contracts on the block explorer:", fg="yellow")
            for command in verification_commands(ledger):
                self._echo(command)

    def dump_ledger(self, ledger) -> None:
        """Prints the in-memory ledger so a lost record can be recovered by hand."""
        self._echo("\nIn-memory deployment ledger:", fg="red", bold=True, err=True)
        self._echo(json.dumps(ledger.to_json(), indent=2), err=True)
