#!/usr/bin/python3

from pathlib import Path

import click

from capturgo_deployment.registry import default_artifacts_dir, list_records


@click.command(name="list-deployments")
@click.option(
    "--artifacts-dir",
    help="Directory holding the deployment records; ./deployments by default",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
)
def cli(artifacts_dir):
    """List all persisted deployment records."""
    artifacts_dir = artifacts_dir or default_artifacts_dir()
    records = list_records(artifacts_dir)
    if not records:
        click.echo(f"No deployment records in {artifacts_dir}")
        return
    for record in records:
        click.secho(f"\n{record.network} (Chain ID: {record.chain_id})", fg="green")
        click.secho(f"    Deployed {record.timestamp} by {record.deployer}", fg="yellow")
        for index, (name, address) in enumerate(record.contracts.items(), start=1):
            click.secho(f"        {index}. {name} {address}", fg="cyan")


if __name__ == "__main__":
    cli()
