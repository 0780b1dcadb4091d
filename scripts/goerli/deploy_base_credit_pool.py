#!/usr/bin/python3

import sys

import click
from ape.cli import ConnectedProviderCommand, network_option

from deployment.constants import CONSTRUCTOR_PARAMS_DIR
from deployment.driver import run_from_yaml
from deployment.events import configure_logging

CONSTRUCTOR_PARAMS_FILEPATH = CONSTRUCTOR_PARAMS_DIR / "goerli-base-credit-pool.yml"


@click.command(cls=ConnectedProviderCommand)
@network_option(required=True)
def cli(network):
    """
    Deploys the base credit pool contracts on Goerli. The HDT and pool proxies
    are administered by the Huma and pool owner accounts, which set them up.

    ape run goerli deploy_base_credit_pool --network ethereum:goerli:infura
    """
    configure_logging()
    sys.exit(run_from_yaml(CONSTRUCTOR_PARAMS_FILEPATH))


if __name__ == "__main__":
    cli()
