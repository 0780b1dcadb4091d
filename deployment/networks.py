from ape import networks
from ape.api.networks import LOCAL_NETWORK_NAME


def is_local_network() -> bool:
    """True for ape's local development networks (and forks of live ones)."""
    network_name = networks.provider.network.name
    return network_name == LOCAL_NETWORK_NAME or network_name.endswith("-fork")


def active_chain_id() -> int:
    return networks.provider.chain_id


def read_storage(address: str, slot: int) -> bytes:
    """Reads one raw 32-byte storage slot of a contract on the connected network."""
    return bytes(networks.provider.web3.eth.get_storage_at(address, slot))
