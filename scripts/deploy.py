#!/usr/bin/python3

from pathlib import Path

import click
from ape.cli import ConnectedProviderCommand, account_option, network_option

from capturgo_deployment.constants import DEFAULT_PLAN_FILEPATH
from capturgo_deployment.exceptions import PersistenceError, PlanValidationError, StageError
from capturgo_deployment.gateway import ApeGateway, is_local_network, verify_contracts
from capturgo_deployment.pipeline import run_deployment
from capturgo_deployment.plan import DeploymentPlan
from capturgo_deployment.registry import read_record
from capturgo_deployment.reporter import Reporter


@click.command(cls=ConnectedProviderCommand)
@account_option()
@network_option(required=True)
@click.option(
    "--autosign",
    help="Sign every deployment and transaction without asking for confirmation.",
    is_flag=True,
)
@click.option(
    "--overwrite",
    help="Supersede an existing record for this chain; the old record is archived.",
    is_flag=True,
)
@click.option(
    "--verify",
    help="Publish contract sources to the block explorer after deployment.",
    is_flag=True,
)
def cli(account, network, autosign, overwrite, verify):
    """
    Deploys and wires the CapturGO contracts on the connected network:

    BaseToken, DataContribution, DeviceRegistry, DataMarketplace and
    StakingRewards, then grants roles, mints the initial supply and funds
    the staking rewards pool. The record is written to ./deployments/<chainId>.json.

    ape run deploy --network base:sepolia:node
    """
    try:
        plan = DeploymentPlan.from_yaml(DEFAULT_PLAN_FILEPATH)
    except PlanValidationError as e:
        raise click.ClickException(f"Invalid deployment plan: {e}")

    gateway = ApeGateway(account=account, autosign=autosign)
    reporter = Reporter()
    try:
        record_path = run_deployment(plan, gateway, reporter=reporter, overwrite=overwrite)
    except PlanValidationError as e:
        raise click.ClickException(f"Invalid deployment plan: {e}")
    except StageError as e:
        click.secho(
            f"\nDeployment aborted at '{e.stage}'; "
            f"{len(e.ledger) if e.ledger is not None else 0} contract(s) were deployed "
            "and no record was written.",
            fg="red",
            err=True,
        )
        if e.ledger is not None:
            reporter.dump_ledger(e.ledger)
        raise click.ClickException(str(e.cause))
    except PersistenceError as e:
        if e.ledger is not None:
            raise click.ClickException(
                f"{e}\nAll contracts were deployed but the record was NOT saved; "
                "recover the addresses from the ledger above."
            )
        raise click.ClickException(str(e))

    if verify and not is_local_network():
        record = read_record(Path(record_path))
        verify_contracts(record.contracts.values())


if __name__ == "__main__":
    cli()
