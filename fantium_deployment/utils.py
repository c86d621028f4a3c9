import json
from pathlib import Path
from typing import Dict, List

import yaml
from ape import networks, project
from ape.contracts import ContractContainer, ContractInstance

from fantium_deployment.constants import ADDRESSES_DIR, EXPLORER_API_KEY_ENVVAR, MAX_CONTRACT_SIZE
from fantium_deployment.networks import NetworkConfig, get_chain_id, is_local_network


class ContractSizeExceeded(Exception):
    """Raised when a contract's runtime bytecode is larger than the EIP-170 limit"""


def _load_yaml(filepath: Path) -> dict:
    """Loads a YAML file."""
    with open(filepath, "r") as file:
        return yaml.safe_load(file)


def _load_json(filepath: Path) -> dict:
    """Loads a JSON file."""
    with open(filepath, "r") as file:
        return json.load(file)


def get_artifact_filepath(config: Dict) -> Path:
    """Returns the filepath of the address record written by the deployment."""
    artifact_config = config.get("artifacts", {})
    artifact_dir = Path(artifact_config.get("dir", ADDRESSES_DIR))
    filename = artifact_config.get("filename")
    if not filename:
        raise ValueError("artifact filename is not set in params file.")
    return artifact_dir / filename


def validate_config(config: Dict) -> Path:
    """
    Checks the params file and that it targets the connected chain.
    Returns the filepath of the address record.
    """
    print("Validating parameters YAML...")

    deployment = config.get("deployment")
    if not deployment:
        raise ValueError("deployment is not set in params file.")

    config_chain_id = deployment.get("chain_id")
    if not config_chain_id:
        raise ValueError("chain_id is not set in params file.")

    contracts = config.get("contracts")
    if not contracts:
        raise ValueError("Constructor parameters file missing 'contracts' field.")

    config_chain_id = int(config_chain_id)
    chain_id = get_chain_id()
    if config_chain_id != chain_id and not is_local_network():
        raise ValueError(
            f"chain_id in params file ({config_chain_id}) does not match "
            f"chain_id of current network ({chain_id})."
        )

    return get_artifact_filepath(config=config)


def check_etherscan_plugin(network_config: NetworkConfig) -> None:
    """
    Checks that the ape-etherscan plugin is installed and that
    the block explorer API key is set.
    """
    if is_local_network():
        # unnecessary for local deployment
        return
    try:
        import ape_etherscan  # noqa: F401
    except ImportError:
        raise ImportError("Please install the ape-etherscan plugin to use this script.")
    if not network_config.explorer_api_key:
        raise ValueError(f"{EXPLORER_API_KEY_ENVVAR} is not set.")


def check_plugins(network_config: NetworkConfig) -> None:
    print("Checking plugins...")
    check_etherscan_plugin(network_config)


def verify_contracts(contracts: List[ContractInstance]) -> None:
    explorer = networks.provider.network.explorer
    for instance in contracts:
        print(f"(i) Verifying {instance.contract_type.name}...")
        explorer.publish_contract(instance.address)


def _get_dependency_contract_container(contract: str) -> ContractContainer:
    for dependency_name, dependency_versions in project.dependencies.items():
        if len(dependency_versions) > 1:
            raise ValueError(f"Ambiguous {dependency_name} dependency for {contract}")
        try:
            dependency_api = list(dependency_versions.values())[0]
            contract_container = getattr(dependency_api, contract)
            return contract_container
        except AttributeError:
            continue
    raise ValueError(f"No contract found with name '{contract}'.")


def get_contract_container(contract: str) -> ContractContainer:
    try:
        contract_container = getattr(project, contract)
    except AttributeError:
        # not in root project; check dependencies
        contract_container = _get_dependency_contract_container(contract)

    return contract_container


def get_contract_size(container: ContractContainer) -> int:
    """Returns the size in bytes of a contract's runtime bytecode."""
    runtime_bytecode = container.contract_type.runtime_bytecode
    bytecode = runtime_bytecode.bytecode if runtime_bytecode else None
    if not bytecode:
        return 0
    if bytecode.startswith("0x"):
        bytecode = bytecode[2:]
    return len(bytecode) // 2


def check_contract_size(container: ContractContainer) -> int:
    contract_name = container.contract_type.name
    size = get_contract_size(container)
    if size > MAX_CONTRACT_SIZE:
        raise ContractSizeExceeded(
            f"{contract_name} runtime bytecode is {size} bytes; "
            f"the limit is {MAX_CONTRACT_SIZE} bytes."
        )
    return size


def export_abi(container: ContractContainer, output_dir: Path, flat: bool = False) -> Path:
    """
    Writes the ABI of a contract to <output_dir>/<source path>/<Name>.json,
    or to <output_dir>/<Name>.json when flat.
    """
    contract_type = container.contract_type
    abi = [entry.model_dump(mode="json", by_alias=True) for entry in contract_type.abi]

    filepath = output_dir / f"{contract_type.name}.json"
    if not flat and contract_type.source_id:
        filepath = output_dir / contract_type.source_id / f"{contract_type.name}.json"

    filepath.parent.mkdir(parents=True, exist_ok=True)
    with open(filepath, "w") as file:
        json.dump(abi, file, indent=2)
    return filepath
