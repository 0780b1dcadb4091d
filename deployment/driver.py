from functools import partial
from pathlib import Path
from typing import Callable, Iterable, List, NamedTuple, Optional, Sequence

import click
from ape import accounts
from ape.api import AccountAPI
from ape.contracts import ContractInstance

from deployment.deployer import ContainerResolver, Deployer
from deployment.errors import DeploymentError, SignerConfigurationError
from deployment.events import get_logger
from deployment.ledger import InitializationLedger
from deployment.networks import active_chain_id, is_local_network, read_storage
from deployment.orchestrator import (
    InitializationOrchestrator,
    InitializationTarget,
    SetupStep,
)
from deployment.params import DeploymentParameters
from deployment.registry import ContractRegistry
from deployment.signers import SignerRole, SignerRoles
from deployment.utils import get_contract_container, get_ledger_filepath

EXIT_SUCCESS = 0
EXIT_FAILURE = 1

log = get_logger()


class RunConfig(NamedTuple):
    """
    Everything one run needs. `accounts` and `chain_id` default to the
    connected ape network; tests pass them explicitly.
    """

    params: DeploymentParameters
    plan: Optional[Callable[["RunContext"], Sequence[InitializationTarget]]] = None
    roles: Iterable[SignerRole] = ()
    accounts: Optional[Sequence[AccountAPI]] = None
    chain_id: Optional[int] = None
    container_resolver: ContainerResolver = get_contract_container
    storage_reader: Callable[[str, int], bytes] = read_storage


def network_accounts(aliases: Sequence[str]) -> List[AccountAPI]:
    """
    The account list signer roles are bound from: ape's test accounts on local
    networks, otherwise the imported accounts named in the parameters file.
    """
    if is_local_network():
        return list(accounts.test_accounts)

    loaded = list()
    for alias in aliases:
        try:
            account = accounts.load(alias)
        except KeyError as e:
            raise SignerConfigurationError(
                f"No account named '{alias}' is imported; "
                f"add it with `ape accounts import {alias}`."
            ) from e
        log.warning("signer.autosign_enabled", alias=alias, address=account.address)
        account.set_autosign(True)
        loaded.append(account)
    return loaded


class RunContext:
    """
    The state of one run, threaded explicitly through the deployer, the
    orchestrator and the scenario setup plans.
    """

    def __init__(
        self,
        params: DeploymentParameters,
        roles: SignerRoles,
        registry: ContractRegistry,
        ledger: InitializationLedger,
        deployer: Deployer,
        orchestrator: InitializationOrchestrator,
        storage_reader: Callable[[str, int], bytes] = read_storage,
    ):
        self.params = params
        self.roles = roles
        self.registry = registry
        self.ledger = ledger
        self.deployer = deployer
        self.orchestrator = orchestrator
        self.read_storage = storage_reader

    @classmethod
    def build(cls, config: RunConfig) -> "RunContext":
        params = config.params
        if config.chain_id is None:
            chain_id = active_chain_id()
            params.validate_chain_id(chain_id, live=not is_local_network())
        else:
            chain_id = config.chain_id

        if config.accounts is None:
            account_list = network_accounts(params.account_aliases)
        else:
            account_list = config.accounts
        roles = SignerRoles.from_accounts(
            account_list, required=set(params.roles) | set(config.roles)
        )

        registry = ContractRegistry.load(params.registry_filepath, chain_id)
        ledger = InitializationLedger.load(get_ledger_filepath(params.registry_filepath), chain_id)
        deployer = Deployer(
            params=params,
            registry=registry,
            roles=roles,
            container_resolver=config.container_resolver,
        )
        orchestrator = InitializationOrchestrator(registry=registry, ledger=ledger)
        return cls(
            params=params,
            roles=roles,
            registry=registry,
            ledger=ledger,
            deployer=deployer,
            orchestrator=orchestrator,
            storage_reader=config.storage_reader,
        )

    @property
    def constants(self):
        return self.params.constant_values

    def contract(self, name: str) -> ContractInstance:
        return self.deployer.attach(name)

    def address(self, name: str) -> str:
        return self.registry.address(name)

    def step(
        self,
        description: str,
        method,
        *args,
        sender: Optional[AccountAPI] = None,
        gas_limit: Optional[int] = None,
        skip_if: Optional[Callable[[], bool]] = None,
    ) -> SetupStep:
        """A setup step submitting `method(*args)` through the deployer."""
        call = partial(self.deployer.transact, method, *args, sender=sender, gas_limit=gas_limit)
        return SetupStep(description=description, call=call, skip_if=skip_if)


def _report_failure(scenario: str, error: DeploymentError) -> int:
    log.error("run.failed", scenario=scenario, error=str(error), error_type=type(error).__name__)
    click.echo(f"Deployment run failed: {error}", err=True)
    return EXIT_FAILURE


def run(config: RunConfig) -> int:
    """
    Deploys every logical contract of the parameters file, then runs the
    scenario's setup plan. Stops at the first failure; returns the exit code.
    """
    params = config.params
    log.info("run.started", scenario=params.name, parameters=str(params.path))
    try:
        context = RunContext.build(config)
        context.deployer.deploy_all()
        initialized = list()
        if config.plan is not None:
            targets = config.plan(context)
            initialized = context.orchestrator.initialize_all(targets)
    except DeploymentError as e:
        return _report_failure(params.name, e)

    log.info(
        "run.completed",
        scenario=params.name,
        deployed=len(context.registry),
        initialized=initialized,
    )
    return EXIT_SUCCESS


class ContractStatus(NamedTuple):
    name: str
    address: Optional[str]
    kind: str
    initialized: bool


def deployment_status(params: DeploymentParameters, chain_id: int) -> List[ContractStatus]:
    """What the persisted registry and ledger record for each logical contract."""
    registry = ContractRegistry.load(params.registry_filepath, chain_id)
    ledger = InitializationLedger.load(get_ledger_filepath(params.registry_filepath), chain_id)
    statuses = list()
    for name in params.contract_names:
        entry = registry.get(name)
        if entry is None:
            statuses.append(ContractStatus(name, None, "-", False))
            continue
        kind = "proxy" if entry.is_proxy else "plain"
        statuses.append(ContractStatus(name, entry.address, kind, ledger.is_initialized(name)))
    return statuses


def run_from_yaml(filepath: Path, **kwargs) -> int:
    """Loads a parameters file and runs it; a malformed file fails the run like any other error."""
    try:
        params = DeploymentParameters.from_yaml(filepath)
    except DeploymentError as e:
        return _report_failure(filepath.stem, e)
    return run(RunConfig(params=params, **kwargs))
