import json
from pathlib import Path

import pytest

from fantium_deployment import utils
from fantium_deployment.constants import ADDRESSES_DIR, CONSTRUCTOR_PARAMS_DIR, MAX_CONTRACT_SIZE
from fantium_deployment.utils import (
    ContractSizeExceeded,
    _load_yaml,
    check_contract_size,
    export_abi,
    get_artifact_filepath,
    get_contract_size,
    validate_config,
)

from conftest import MUMBAI_CHAIN_ID, UUPS_METHODS, FakeContainer


@pytest.fixture
def mumbai(monkeypatch):
    monkeypatch.setattr(utils, "get_chain_id", lambda: MUMBAI_CHAIN_ID)
    monkeypatch.setattr(utils, "is_local_network", lambda: False)


def test_artifact_filepath_defaults_to_addresses_dir():
    config = {"artifacts": {"filename": "fantium.json"}}
    assert get_artifact_filepath(config) == ADDRESSES_DIR / "fantium.json"


def test_artifact_filepath_requires_filename():
    with pytest.raises(ValueError, match="filename"):
        get_artifact_filepath({"artifacts": {"dir": "./addresses"}})


def test_validate_config(mumbai):
    config = {
        "deployment": {"name": "fantium", "chain_id": str(MUMBAI_CHAIN_ID)},
        "artifacts": {"dir": "./addresses", "filename": "fantium.json"},
        "contracts": ["FantiumNFT"],
    }
    assert validate_config(config) == Path("./addresses/fantium.json")


@pytest.mark.parametrize(
    "config, message",
    [
        ({"contracts": ["FantiumNFT"]}, "deployment is not set"),
        ({"deployment": {"name": "fantium"}, "contracts": ["FantiumNFT"]}, "chain_id is not set"),
        ({"deployment": {"chain_id": MUMBAI_CHAIN_ID}}, "missing 'contracts'"),
    ],
)
def test_validate_incomplete_config(mumbai, config, message):
    with pytest.raises(ValueError, match=message):
        validate_config(config)


@pytest.mark.parametrize("filepath", sorted(CONSTRUCTOR_PARAMS_DIR.glob("**/*.yml")))
def test_packaged_params_files(mumbai, filepath):
    config = _load_yaml(filepath)
    record_filepath = validate_config(config)
    assert record_filepath.suffix == ".json"


def test_contract_size():
    assert get_contract_size(FakeContainer("FantiumNFT", size=100)) == 100
    largest = FakeContainer("FantiumNFT", size=MAX_CONTRACT_SIZE)
    assert check_contract_size(largest) == MAX_CONTRACT_SIZE

    abstract = FakeContainer("IFantiumNFT")
    abstract.contract_type.runtime_bytecode = None
    assert get_contract_size(abstract) == 0


def test_contract_size_exceeded():
    with pytest.raises(ContractSizeExceeded, match="FantiumNFT runtime bytecode is 24577 bytes"):
        check_contract_size(FakeContainer("FantiumNFT", size=MAX_CONTRACT_SIZE + 1))


def test_export_abi(tmp_path):
    container = FakeContainer("FantiumNFT", methods=UUPS_METHODS)

    filepath = export_abi(container, output_dir=tmp_path)
    assert filepath == tmp_path / "contracts" / "FantiumNFT.sol" / "FantiumNFT.json"
    with open(filepath) as file:
        abi = json.load(file)
    assert [entry["name"] for entry in abi] == ["upgradeToAndCall", "proxiableUUID"]


def test_export_abi_flat(tmp_path):
    container = FakeContainer("FantiumNFT", methods=UUPS_METHODS)
    assert export_abi(container, output_dir=tmp_path, flat=True) == tmp_path / "FantiumNFT.json"
