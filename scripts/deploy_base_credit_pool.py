#!/usr/bin/python3

import sys

import click
from ape.cli import ConnectedProviderCommand, network_option

from deployment.constants import CONSTRUCTOR_PARAMS_DIR
from deployment.driver import run_from_yaml
from deployment.events import configure_logging
from deployment.scenarios import BASE_CREDIT_POOL_ROLES, base_credit_pool_setup

CONSTRUCTOR_PARAMS_FILEPATH = CONSTRUCTOR_PARAMS_DIR / "base-credit-pool.yml"


@click.command(cls=ConnectedProviderCommand)
@network_option(required=True)
def cli(network):
    """
    Deploys the base credit pool and runs its one-time setup: HumaConfig,
    evaluation agent NFT, fees, HDT, pool config, initial liquidity and pool
    enablement.

    Re-running resumes: deployed contracts are reused from the registry and
    contracts recorded in the initialization ledger are not set up again.

    ape run deploy_base_credit_pool --network ethereum:local:node
    """
    configure_logging()
    exit_code = run_from_yaml(
        CONSTRUCTOR_PARAMS_FILEPATH,
        plan=base_credit_pool_setup,
        roles=BASE_CREDIT_POOL_ROLES,
    )
    sys.exit(exit_code)


if __name__ == "__main__":
    cli()
