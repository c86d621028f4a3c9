import json
from pathlib import Path
from typing import Dict, List, NamedTuple

from ape.contracts import ContractInstance
from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address

from fantium_deployment.utils import _load_json

ContractName = str
AddressRecord = Dict[str, ChecksumAddress]

PROXY_KEY = "proxy"
IMPLEMENTATION_KEY = "implementation"


class ProxyRecord(NamedTuple):
    """The address pair of a proxied deployment."""

    proxy: ChecksumAddress
    implementation: ChecksumAddress


def proxy_record(proxy: str, implementation: str) -> AddressRecord:
    return {
        PROXY_KEY: to_checksum_address(proxy),
        IMPLEMENTATION_KEY: to_checksum_address(implementation),
    }


def contracts_record(contract_instances: List[ContractInstance]) -> AddressRecord:
    """Returns a record keyed by contract name for non-proxied deployments."""
    record = dict()
    for contract_instance in contract_instances:
        name: ContractName = contract_instance.contract_type.name
        if name in record:
            raise ValueError(f"Duplicate contract name '{name}' in address record.")
        record[name] = to_checksum_address(contract_instance.address)
    return record


def read_address_record(filepath: Path) -> AddressRecord:
    if not filepath.exists():
        raise FileNotFoundError(f"No address record found at {filepath}")
    data = _load_json(filepath)
    if not isinstance(data, dict):
        raise ValueError(f"Malformed address record at {filepath}.")
    return data


def read_proxy_record(filepath: Path) -> ProxyRecord:
    data = read_address_record(filepath)
    missing = [key for key in (PROXY_KEY, IMPLEMENTATION_KEY) if key not in data]
    if missing:
        raise ValueError(f"Address record at {filepath} is missing {', '.join(missing)}.")
    return ProxyRecord(
        proxy=to_checksum_address(data[PROXY_KEY]),
        implementation=to_checksum_address(data[IMPLEMENTATION_KEY]),
    )


def write_address_record(record: AddressRecord, filepath: Path) -> Path:
    """Writes an address record, replacing any existing file."""
    if not record:
        raise ValueError("No addresses provided.")

    # fails on anything that is not an address before the file is touched
    data = {name: to_checksum_address(address) for name, address in record.items()}

    filepath.parent.mkdir(parents=True, exist_ok=True)
    if filepath.exists():
        print(f"Overwriting existing address record at {filepath}.")
    else:
        print(f"Creating new address record at {filepath}.")

    with open(filepath, "w", encoding="utf-8") as file:
        json.dump(data, file, indent=4)

    print(f"(i) Address record written to {filepath}!")
    return filepath
