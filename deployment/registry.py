from collections import OrderedDict
from pathlib import Path
from typing import Dict, Iterator, List, NamedTuple, Optional, Union

from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address

from deployment.errors import AlreadyDeployed, MissingDependency
from deployment.events import get_logger
from deployment.utils import _load_json, _write_json

ChainId = int
ContractName = str

PROXY_KEY = "proxy"

log = get_logger()


class PlainDeployment(NamedTuple):
    """A contract called directly at the address it was created at."""

    address: ChecksumAddress


class ProxyDeployment(NamedTuple):
    """
    An implementation contract behind a transparent upgradeable proxy.
    Only the proxy address is ever called; the implementation is recorded
    for upgrades and explorer verification.
    """

    implementation: ChecksumAddress
    proxy: ChecksumAddress
    admin: ChecksumAddress

    @property
    def address(self) -> ChecksumAddress:
        return self.proxy


Deployment = Union[PlainDeployment, ProxyDeployment]


class RegistryEntry(NamedTuple):
    """Represents a single deployed logical contract."""

    chain_id: ChainId
    name: ContractName
    contract_type: str
    deployment: Deployment
    tx_hash: str
    block_number: int
    deployer: ChecksumAddress

    @property
    def address(self) -> ChecksumAddress:
        return self.deployment.address

    @property
    def is_proxy(self) -> bool:
        return isinstance(self.deployment, ProxyDeployment)


def _entry_to_json(entry: RegistryEntry) -> dict:
    data = {
        "address": entry.address,
        "contract_type": entry.contract_type,
        "tx_hash": entry.tx_hash,
        "block_number": int(entry.block_number),
        "deployer": entry.deployer,
    }
    if entry.is_proxy:
        data[PROXY_KEY] = {
            "implementation": entry.deployment.implementation,
            "admin": entry.deployment.admin,
        }
    return data


def _entry_from_json(chain_id: ChainId, name: ContractName, data: dict) -> RegistryEntry:
    address = to_checksum_address(data["address"])
    proxy_info = data.get(PROXY_KEY)
    if proxy_info:
        deployment = ProxyDeployment(
            implementation=to_checksum_address(proxy_info["implementation"]),
            proxy=address,
            admin=to_checksum_address(proxy_info["admin"]),
        )
    else:
        deployment = PlainDeployment(address=address)
    return RegistryEntry(
        chain_id=chain_id,
        name=name,
        contract_type=data.get("contract_type", name),
        deployment=deployment,
        tx_hash=data["tx_hash"],
        block_number=int(data["block_number"]),
        deployer=data["deployer"],
    )


def read_registry(filepath: Path) -> List[RegistryEntry]:
    data = _load_json(filepath)
    registry_entries = list()
    for chain_id, entries in data.items():
        for contract_name, artifacts in entries.items():
            registry_entries.append(_entry_from_json(int(chain_id), contract_name, artifacts))
    return registry_entries


def write_registry(entries: List[RegistryEntry], filepath: Path, chain_id: ChainId) -> Path:
    """
    Writes the entries of one chain to a registry file. Entries of other chains
    already present in the file are preserved as they are.
    """
    data = _load_json(filepath) if filepath.exists() else dict()
    data[str(chain_id)] = {entry.name: _entry_to_json(entry) for entry in entries}
    return _write_json(data, filepath)


class ContractRegistry:
    """
    Persisted mapping of logical contract name to its deployment on one chain.

    Entries are appended as contracts are deployed and flushed to disk right
    away, so a failed run can be resumed from what already made it on-chain.
    """

    def __init__(self, filepath: Path, chain_id: ChainId, entries: List[RegistryEntry] = None):
        self.filepath = filepath
        self.chain_id = chain_id
        self._entries: Dict[ContractName, RegistryEntry] = OrderedDict()
        for entry in entries or list():
            self._entries[entry.name] = entry

    @classmethod
    def load(cls, filepath: Path, chain_id: ChainId) -> "ContractRegistry":
        """Loads the entries of `chain_id`, or starts an empty registry."""
        entries = list()
        if filepath.exists():
            entries = [e for e in read_registry(filepath) if e.chain_id == chain_id]
        log.debug("registry.loaded", path=str(filepath), chain_id=chain_id, entries=len(entries))
        return cls(filepath=filepath, chain_id=chain_id, entries=entries)

    def __contains__(self, name: ContractName) -> bool:
        return name in self._entries

    def __iter__(self) -> Iterator[RegistryEntry]:
        return iter(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, name: ContractName) -> Optional[RegistryEntry]:
        return self._entries.get(name)

    def entry(self, name: ContractName) -> RegistryEntry:
        try:
            return self._entries[name]
        except KeyError:
            raise MissingDependency(name)

    def address(self, name: ContractName) -> ChecksumAddress:
        """The callable address of a logical contract (the proxy, for proxies)."""
        return self.entry(name).address

    def record(self, entry: RegistryEntry, overwrite: bool = False) -> None:
        if entry.chain_id != self.chain_id:
            raise ValueError(
                f"Cannot record a chain {entry.chain_id} deployment "
                f"in the registry of chain {self.chain_id}."
            )
        existing = self._entries.get(entry.name)
        if existing and not overwrite:
            raise AlreadyDeployed(entry.name, existing.address)
        self._entries[entry.name] = entry
        self.save()

    def save(self) -> Path:
        return write_registry(list(self._entries.values()), self.filepath, self.chain_id)
