#!/usr/bin/python3

import click
from ape.cli import ConnectedProviderCommand, network_option

from deployment.constants import CONSTRUCTOR_PARAMS_DIR, SUPPORTED_SCENARIOS
from deployment.driver import deployment_status
from deployment.networks import active_chain_id
from deployment.params import DeploymentParameters


@click.command(cls=ConnectedProviderCommand)
@network_option(required=True)
@click.option(
    "--scenario",
    "-s",
    help="Deployment scenario whose registry and ledger to show",
    type=click.Choice(SUPPORTED_SCENARIOS),
    required=True,
)
def cli(network, scenario):
    """Shows which contracts of a scenario are deployed and initialized on this network."""
    params = DeploymentParameters.from_yaml(CONSTRUCTOR_PARAMS_DIR / f"{scenario}.yml")
    chain_id = active_chain_id()
    click.echo(f"{params.name} on chain {chain_id} ({params.registry_filepath})")
    for status in deployment_status(params, chain_id=chain_id):
        initialized = "initialized" if status.initialized else "-"
        click.echo(
            f"  {status.name:<36} {status.address or 'not deployed':<44} "
            f"{status.kind:<6} {initialized}"
        )


if __name__ == "__main__":
    cli()
