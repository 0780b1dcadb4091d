import json

import pytest
from eth_utils import to_checksum_address

from deployment.errors import AlreadyDeployed, MissingDependency
from deployment.registry import (
    ContractRegistry,
    PlainDeployment,
    ProxyDeployment,
    RegistryEntry,
    read_registry,
)

CHAIN_ID = 1337
OTHER_CHAIN_ID = 5

TOKEN_ADDRESS = to_checksum_address("0x" + "11" * 20)
IMPLEMENTATION_ADDRESS = to_checksum_address("0x" + "22" * 20)
PROXY_ADDRESS = to_checksum_address("0x" + "33" * 20)
ADMIN_ADDRESS = to_checksum_address("0x" + "44" * 20)
DEPLOYER_ADDRESS = to_checksum_address("0x" + "55" * 20)


def plain_entry(name="USDC", chain_id=CHAIN_ID, address=TOKEN_ADDRESS):
    return RegistryEntry(
        chain_id=chain_id,
        name=name,
        contract_type="TestToken",
        deployment=PlainDeployment(address=address),
        tx_hash="0x" + "ab" * 32,
        block_number=7,
        deployer=DEPLOYER_ADDRESS,
    )


def proxy_entry(name="BaseCreditPool"):
    return RegistryEntry(
        chain_id=CHAIN_ID,
        name=name,
        contract_type="BaseCreditPool",
        deployment=ProxyDeployment(
            implementation=IMPLEMENTATION_ADDRESS, proxy=PROXY_ADDRESS, admin=ADMIN_ADDRESS
        ),
        tx_hash="0x" + "cd" * 32,
        block_number=9,
        deployer=DEPLOYER_ADDRESS,
    )


@pytest.fixture
def registry_filepath(tmp_path):
    return tmp_path / "registry.json"


def test_empty_registry_when_file_is_missing(registry_filepath):
    registry = ContractRegistry.load(registry_filepath, CHAIN_ID)
    assert len(registry) == 0
    assert "USDC" not in registry
    assert registry.get("USDC") is None
    assert not registry_filepath.exists()


def test_record_is_persisted_immediately(registry_filepath):
    registry = ContractRegistry.load(registry_filepath, CHAIN_ID)
    registry.record(plain_entry())

    reloaded = ContractRegistry.load(registry_filepath, CHAIN_ID)
    assert "USDC" in reloaded
    assert reloaded.entry("USDC") == plain_entry()
    assert reloaded.address("USDC") == TOKEN_ADDRESS


def test_proxy_entry_resolves_to_proxy_address(registry_filepath):
    registry = ContractRegistry.load(registry_filepath, CHAIN_ID)
    registry.record(proxy_entry())

    entry = ContractRegistry.load(registry_filepath, CHAIN_ID).entry("BaseCreditPool")
    assert entry.is_proxy
    assert entry.address == PROXY_ADDRESS
    assert entry.deployment.implementation == IMPLEMENTATION_ADDRESS
    assert entry.deployment.admin == ADMIN_ADDRESS

    data = json.loads(registry_filepath.read_text())
    record = data[str(CHAIN_ID)]["BaseCreditPool"]
    assert record["address"] == PROXY_ADDRESS
    assert record["proxy"] == {"implementation": IMPLEMENTATION_ADDRESS, "admin": ADMIN_ADDRESS}


def test_plain_entry_is_not_a_proxy():
    entry = plain_entry()
    assert not entry.is_proxy
    assert entry.address == TOKEN_ADDRESS


def test_record_twice_requires_overwrite(registry_filepath):
    registry = ContractRegistry.load(registry_filepath, CHAIN_ID)
    registry.record(plain_entry())

    with pytest.raises(AlreadyDeployed) as excinfo:
        registry.record(plain_entry(address=PROXY_ADDRESS))
    assert excinfo.value.address == TOKEN_ADDRESS
    assert registry.address("USDC") == TOKEN_ADDRESS

    registry.record(plain_entry(address=PROXY_ADDRESS), overwrite=True)
    assert ContractRegistry.load(registry_filepath, CHAIN_ID).address("USDC") == PROXY_ADDRESS


def test_record_rejects_other_chain(registry_filepath):
    registry = ContractRegistry.load(registry_filepath, CHAIN_ID)
    with pytest.raises(ValueError):
        registry.record(plain_entry(chain_id=OTHER_CHAIN_ID))
    assert len(registry) == 0


def test_missing_entry_is_a_missing_dependency(registry_filepath):
    registry = ContractRegistry.load(registry_filepath, CHAIN_ID)
    with pytest.raises(MissingDependency) as excinfo:
        registry.address("HumaConfig")
    assert excinfo.value.dependency == "HumaConfig"


def test_chains_are_kept_apart(registry_filepath):
    ContractRegistry.load(registry_filepath, OTHER_CHAIN_ID).record(
        plain_entry(chain_id=OTHER_CHAIN_ID, address=PROXY_ADDRESS)
    )
    local = ContractRegistry.load(registry_filepath, CHAIN_ID)
    assert "USDC" not in local

    local.record(plain_entry())
    entries = read_registry(registry_filepath)
    assert {(e.chain_id, e.address) for e in entries} == {
        (OTHER_CHAIN_ID, PROXY_ADDRESS),
        (CHAIN_ID, TOKEN_ADDRESS),
    }


def test_entries_keep_recording_order(registry_filepath):
    registry = ContractRegistry.load(registry_filepath, CHAIN_ID)
    registry.record(plain_entry(name="USDC"))
    registry.record(proxy_entry(name="BaseCreditPool"))
    registry.record(plain_entry(name="EANFT", address=ADMIN_ADDRESS))
    assert [entry.name for entry in registry] == ["USDC", "BaseCreditPool", "EANFT"]

    reloaded = ContractRegistry.load(registry_filepath, CHAIN_ID)
    assert [entry.name for entry in reloaded] == ["USDC", "BaseCreditPool", "EANFT"]
    assert list(json.loads(registry_filepath.read_text())[str(CHAIN_ID)]) == [
        "USDC",
        "BaseCreditPool",
        "EANFT",
    ]


def test_no_temporary_files_left_behind(registry_filepath):
    registry = ContractRegistry.load(registry_filepath, CHAIN_ID)
    registry.record(plain_entry())
    registry.record(proxy_entry())
    assert [path.name for path in registry_filepath.parent.iterdir()] == ["registry.json"]
