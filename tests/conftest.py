from pathlib import Path
from types import SimpleNamespace
from typing import Any, NamedTuple, Optional, Tuple

import pytest
from ape.exceptions import ApeException
from eth_utils import to_checksum_address

from deployment.constants import PROXY_CONTRACT_TYPE
from deployment.deployer import Deployer
from deployment.ledger import InitializationLedger
from deployment.orchestrator import InitializationOrchestrator
from deployment.params import DeploymentParameters
from deployment.registry import ContractRegistry
from deployment.signers import SignerRole, SignerRoles
from deployment.utils import get_ledger_filepath

# Common constants
CHAIN_ID = 1337
ONE_USDC = 10**6


class Revert(ApeException):
    """What the fake chain raises for a reverted transaction."""


class Receipt(NamedTuple):
    txn_hash: str
    block_number: int


class Transaction(NamedTuple):
    kind: str  # "deploy" or "call"
    name: str  # contract type for deployments, method name for calls
    args: Tuple[Any, ...]
    sender: str
    address: Optional[str] = None  # address called
    target: Optional[str] = None  # address whose code ran (the implementation, behind a proxy)
    kwargs: Optional[dict] = None


class Chain:
    """
    In-memory stand-in for the ape chain client: accounts deploy containers,
    instances expose their methods, every transaction is recorded and blocks
    until "mined", and failures are injected by contract type or method name.
    """

    def __init__(self):
        self.block_number = 0
        self.transactions = list()
        self.code = dict()  # address -> (contract type, constructor args)
        self.views = dict()  # (address, method, args) -> value
        self.storage = dict()  # (address, slot) -> bytes
        self.failures = dict()
        self._containers = dict()
        self._next_address = 0x1000

    def container(self, contract_type: str) -> "Container":
        if contract_type not in self._containers:
            self._containers[contract_type] = Container(self, contract_type)
        return self._containers[contract_type]

    def fail(self, name: str, error: Exception = None) -> None:
        self.failures[name] = error or Revert(f"{name} reverted")

    def heal(self, name: str) -> None:
        self.failures.pop(name, None)

    def set_view(self, address: str, method: str, args: tuple, value: Any) -> None:
        self.views[(address, method, tuple(args))] = value

    def read_view(self, address: str, method: str, args: tuple) -> Any:
        return self.views.get((address, method, tuple(args)), 0)

    def read_storage(self, address: str, slot: int) -> bytes:
        return self.storage.get((address, slot), bytes(32))

    def implementation_of(self, address: str) -> str:
        contract_type, args = self.code[address]
        if contract_type == PROXY_CONTRACT_TYPE:
            return args[0]
        return address

    def submit(self, transaction: Transaction) -> Receipt:
        if transaction.name in self.failures:
            raise self.failures[transaction.name]
        self.block_number += 1
        self.transactions.append(transaction)
        return Receipt(txn_hash=f"0x{self.block_number:064x}", block_number=self.block_number)

    def new_address(self) -> str:
        self._next_address += 1
        return to_checksum_address(f"0x{self._next_address:040x}")

    def calls(self, method: str = None):
        return [
            t
            for t in self.transactions
            if t.kind == "call" and (method is None or t.name == method)
        ]

    def deployments(self, contract_type: str = None):
        return [
            t
            for t in self.transactions
            if t.kind == "deploy" and (contract_type is None or t.name == contract_type)
        ]


class Container:
    def __init__(self, chain: Chain, name: str):
        self.chain = chain
        self.contract_type = SimpleNamespace(name=name)

    def at(self, address: str) -> "Instance":
        return Instance(self.chain, self, address)


class Method:
    def __init__(self, instance: "Instance", name: str):
        self.contract = instance
        self.name = name
        self.abis = [SimpleNamespace(name=name)]

    def __call__(self, *args, sender=None, **kwargs):
        instance = self.contract
        if sender is None:
            return instance.chain.read_view(instance.address, self.name, args)
        return instance.chain.submit(
            Transaction(
                kind="call",
                name=self.name,
                args=args,
                sender=sender.address,
                address=instance.address,
                target=instance.chain.implementation_of(instance.address),
                kwargs=kwargs,
            )
        )


class Instance:
    def __init__(self, chain: Chain, container: Container, address: str):
        self.chain = chain
        self.contract_type = container.contract_type
        self.address = address
        self.receipt = None

    def __getattr__(self, name: str) -> Method:
        if name.startswith("_"):
            raise AttributeError(name)
        return Method(self, name)


class Account:
    def __init__(self, chain: Chain, index: int):
        self.chain = chain
        self.address = to_checksum_address("0x" + f"{index + 0xa0:02x}" * 20)

    def deploy(self, container: Container, *args, **kwargs) -> Instance:
        name = container.contract_type.name
        receipt = self.chain.submit(
            Transaction(kind="deploy", name=name, args=args, sender=self.address, kwargs=kwargs)
        )
        address = self.chain.new_address()
        self.chain.code[address] = (name, args)
        instance = container.at(address)
        instance.receipt = receipt
        return instance


def params_config(artifacts_dir: Path) -> dict:
    """Token -> NFT referencing the token -> Config referencing both, plus a proxied HDT."""
    return {
        "deployment": {"name": "test-pool", "chain_id": CHAIN_ID},
        "artifacts": {"dir": str(artifacts_dir), "filename": "test-pool.json"},
        "constants": {"TREASURY_FEE_BPS": 500, "LIQUIDITY_CAP": 1_000_000 * ONE_USDC},
        "contracts": [
            {"Token": {"contract_type": "TestToken", "gas_limit": 3_000_000}},
            {"NFT": {"contract_type": "InvoiceNFT", "constructor": {"_usdc": "$Token"}}},
            {
                "Config": {
                    "contract_type": "BasePoolConfig",
                    "constructor": {"_nft": "$NFT", "_token": "$Token"},
                }
            },
            {"HDT": {"proxy": {"admin": "$proxy_owner"}}},
        ],
    }


# Fixtures
@pytest.fixture
def chain():
    return Chain()


@pytest.fixture
def network_accounts(chain):
    return [Account(chain, index) for index in range(len(SignerRole))]


@pytest.fixture
def roles(network_accounts):
    return SignerRoles.from_accounts(network_accounts)


@pytest.fixture
def artifacts_dir(tmp_path):
    return tmp_path / "artifacts"


@pytest.fixture
def params(artifacts_dir):
    return DeploymentParameters.from_config(params_config(artifacts_dir))


@pytest.fixture
def registry(params):
    return ContractRegistry.load(params.registry_filepath, CHAIN_ID)


@pytest.fixture
def ledger(registry):
    return InitializationLedger.load(get_ledger_filepath(registry.filepath), CHAIN_ID)


@pytest.fixture
def deployer(params, registry, roles, chain):
    return Deployer(
        params=params, registry=registry, roles=roles, container_resolver=chain.container
    )


@pytest.fixture
def orchestrator(registry, ledger):
    return InitializationOrchestrator(registry=registry, ledger=ledger)


@pytest.fixture
def events():
    from structlog.testing import capture_logs

    with capture_logs() as logs:
        yield logs


def event_names(logs):
    return [entry["event"] for entry in logs]

