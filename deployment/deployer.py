import typing
from typing import Any, Callable, List, Optional, Union

from ape.api import AccountAPI, ReceiptAPI
from ape.contracts import ContractContainer, ContractInstance
from ape.exceptions import ApeException

from deployment.constants import PROXY_CONTRACT_TYPE
from deployment.errors import AlreadyDeployed, DeploymentConfigError, DeploymentFailure
from deployment.events import get_logger
from deployment.params import DeploymentParameters, LogicalContract, ResolutionContext
from deployment.registry import (
    ContractRegistry,
    PlainDeployment,
    ProxyDeployment,
    RegistryEntry,
)
from deployment.signers import SignerRoles
from deployment.utils import get_contract_container

# what the chain client raises when a transaction reverts or never confirms
CHAIN_ERRORS = (ApeException, TimeoutError)

ContainerResolver = Callable[[str], ContractContainer]

log = get_logger()


def _method_name(method) -> str:
    try:
        return method.abis[0].name
    except (AttributeError, IndexError):
        return str(method)


class Transactor:
    """
    Represents an ape account plus logged, blocking transaction execution.
    """

    def __init__(self, account: AccountAPI):
        self._account = account

    def get_account(self) -> AccountAPI:
        """Returns the transactor account."""
        return self._account

    def transact(
        self,
        method,
        *args,
        sender: Optional[AccountAPI] = None,
        gas_limit: Optional[int] = None,
    ) -> ReceiptAPI:
        """Submits one state-mutating call and waits for its receipt."""
        sender = sender or self._account
        contract = method.contract
        event = log.bind(
            contract=contract.contract_type.name,
            address=contract.address,
            method=_method_name(method),
            sender=sender.address,
        )
        event.info("transaction.submitted", args=[str(arg) for arg in args])

        kwargs = {"sender": sender}
        if gas_limit:
            kwargs["gas_limit"] = gas_limit
        receipt = method(*args, **kwargs)

        event.info(
            "transaction.confirmed",
            txn_hash=str(receipt.txn_hash),
            block_number=receipt.block_number,
        )
        return receipt


class Deployer(Transactor):
    """
    Deploys the logical contracts of a parameters file and records each one
    in the registry once its creation transaction(s) are confirmed.
    """

    def __init__(
        self,
        params: DeploymentParameters,
        registry: ContractRegistry,
        roles: SignerRoles,
        container_resolver: ContainerResolver = get_contract_container,
    ):
        super().__init__(roles.deployer)
        self.params = params
        self.registry = registry
        self.roles = roles
        self.verify = params.verify
        self._get_container = container_resolver
        self.context = ResolutionContext(
            registry=registry, roles=roles, constants=params.constants
        )

    def _get_kwargs(self, gas_limit: Optional[int] = None) -> typing.Dict[str, Any]:
        """Returns the deployment kwargs."""
        kwargs = {"publish": self.verify}
        if gas_limit:
            kwargs["gas_limit"] = gas_limit
        return kwargs

    def _logical_contract(self, contract: Union[str, LogicalContract]) -> LogicalContract:
        if isinstance(contract, LogicalContract):
            return contract
        return self.params[contract]

    def _container(self, contract_type: str) -> ContractContainer:
        try:
            return self._get_container(contract_type)
        except ValueError as e:
            raise DeploymentConfigError(str(e)) from e

    def deploy(
        self, contract: Union[str, LogicalContract], redeploy: bool = False
    ) -> RegistryEntry:
        """
        Deploys a logical contract, behind a proxy if it has proxy parameters.
        Nothing is recorded unless every transaction of the deployment confirmed.
        """
        contract = self._logical_contract(contract)
        existing = self.registry.get(contract.name)
        if existing and not redeploy:
            raise AlreadyDeployed(contract.name, existing.address)

        sender = self.roles[contract.signer]
        constructor_args = contract.resolve_constructor_args(self.context)
        container = self._container(contract.contract_type)

        admin, proxy_container = None, None
        if contract.proxy:
            proxy_container = self._container(PROXY_CONTRACT_TYPE)
            admin = contract.proxy.resolve_admin(self.context)
            if admin == sender.address:
                raise DeploymentConfigError(
                    f"The proxy admin of {contract.name} must differ from its deployer "
                    f"({sender.address}); the admin cannot call through its own proxy."
                )

        event = log.bind(
            name=contract.name,
            contract_type=contract.contract_type,
            sender=sender.address,
            proxy=bool(contract.proxy),
        )
        event.info("deploy.started", args=[str(arg) for arg in constructor_args])
        try:
            instance = self._deploy_contract(
                container, constructor_args, sender, contract.gas_limit
            )
            if contract.proxy:
                proxy_instance = self._deploy_proxy(
                    contract, proxy_container, instance, admin, sender
                )
        except CHAIN_ERRORS as e:
            event.error("deploy.failed", error=str(e))
            raise DeploymentFailure(contract.name, e) from e

        if contract.proxy:
            deployment = ProxyDeployment(
                implementation=instance.address, proxy=proxy_instance.address, admin=admin
            )
            receipt = proxy_instance.receipt
        else:
            deployment = PlainDeployment(address=instance.address)
            receipt = instance.receipt

        entry = RegistryEntry(
            chain_id=self.registry.chain_id,
            name=contract.name,
            contract_type=contract.contract_type,
            deployment=deployment,
            tx_hash=str(receipt.txn_hash),
            block_number=receipt.block_number,
            deployer=sender.address,
        )
        self.registry.record(entry, overwrite=redeploy)
        event.info("deploy.confirmed", address=entry.address, txn_hash=entry.tx_hash)
        return entry

    def ensure_deployed(self, contract: Union[str, LogicalContract]) -> RegistryEntry:
        """Returns the recorded deployment of a logical contract, deploying it if there is none."""
        contract = self._logical_contract(contract)
        existing = self.registry.get(contract.name)
        if existing:
            log.info("deploy.reused", name=contract.name, address=existing.address)
            return existing
        return self.deploy(contract)

    def deploy_all(self) -> List[RegistryEntry]:
        """Deploys (or reuses) every logical contract, in parameters file order."""
        return [self.ensure_deployed(contract) for contract in self.params.contracts.values()]

    def attach(self, name: str) -> ContractInstance:
        """
        Returns the logical contract as an instance of its own contract type at
        its registry address; for proxies, calls go through the proxy.
        """
        entry = self.registry.entry(name)
        container = self._container(entry.contract_type)
        return container.at(entry.address)

    def _deploy_contract(
        self,
        container: ContractContainer,
        args: List[Any],
        sender: AccountAPI,
        gas_limit: Optional[int] = None,
    ) -> ContractInstance:
        return sender.deploy(container, *args, **self._get_kwargs(gas_limit))

    def _deploy_proxy(
        self,
        contract: LogicalContract,
        proxy_container: ContractContainer,
        implementation: ContractInstance,
        admin: str,
        sender: AccountAPI,
    ) -> ContractInstance:
        log.info(
            "proxy.started",
            name=contract.name,
            implementation=implementation.address,
            admin=admin,
        )
        # empty initializer payload; initialization is a separate setup step
        return self._deploy_contract(
            proxy_container, [implementation.address, admin, b""], sender
        )
