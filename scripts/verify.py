#!/usr/bin/python3

import click
from ape import networks
from ape.cli import ConnectedProviderCommand, network_option

from capturgo_deployment.gateway import verify_contracts
from capturgo_deployment.registry import read_record, record_filepath
from capturgo_deployment.types import ChecksumAddress


@click.command(cls=ConnectedProviderCommand)
@network_option(required=True)
@click.option(
    "--contract-name",
    "-c",
    "contract_names",
    help="Name of a recorded contract to verify; all recorded contracts by default",
    type=click.STRING,
    multiple=True,
)
@click.argument("address", required=False, type=ChecksumAddress())
@click.argument("constructor_args", nargs=-1)
def cli(network, contract_names, address, constructor_args):
    """
    Verify deployed contracts on the block explorer.

    Either an explicit ADDRESS (as printed in the deployment summary) or the
    contracts recorded for the connected chain. CONSTRUCTOR_ARGS, as printed
    in the summary, are only echoed for reference: the explorer derives the
    constructor arguments from the creation transaction.
    """
    if address:
        if contract_names:
            raise click.BadOptionUsage(
                option_name="--contract-name",
                message="Provide either an address or contract names, not both.",
            )
        if constructor_args:
            click.echo(f"Constructor arguments: {' '.join(constructor_args)}")
        verify_contracts([address])
        return

    chain_id = networks.active_provider.chain_id
    record = read_record(record_filepath(chain_id))
    addresses = list()
    for contract_name in contract_names or record.contracts:
        try:
            addresses.append(record.contracts[contract_name])
        except KeyError:
            raise click.ClickException(
                f"Contract '{contract_name}' not found in record for chain {chain_id}"
            )
    verify_contracts(addresses)


if __name__ == "__main__":
    cli()
