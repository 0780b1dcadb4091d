#!/usr/bin/python3

import sys

import click
from ape.cli import ConnectedProviderCommand, network_option

from deployment.constants import CONSTRUCTOR_PARAMS_DIR
from deployment.driver import run_from_yaml
from deployment.events import configure_logging

CONSTRUCTOR_PARAMS_FILEPATH = CONSTRUCTOR_PARAMS_DIR / "receivable-factoring-pool.yml"


@click.command(cls=ConnectedProviderCommand)
@network_option(required=True)
def cli(network):
    """
    Deploys the receivable factoring pool on Goerli, including the HumaConfig
    timelock and the receivable NFT.

    ape run goerli deploy_receivable_factoring_pool --network ethereum:goerli:infura
    """
    configure_logging()
    sys.exit(run_from_yaml(CONSTRUCTOR_PARAMS_FILEPATH))


if __name__ == "__main__":
    cli()
