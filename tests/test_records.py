import json

import pytest

from fantium_deployment.records import (
    contracts_record,
    proxy_record,
    read_address_record,
    read_proxy_record,
    write_address_record,
)

from conftest import FakeContainer

PROXY = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
IMPLEMENTATION = "0xe7f1725E7734CE288F8367e1Bb143E90bb3F0512"


def test_proxy_record_is_checksummed():
    record = proxy_record(PROXY.lower(), IMPLEMENTATION.lower())
    assert record == {"proxy": PROXY, "implementation": IMPLEMENTATION}


def test_write_creates_missing_directories(tmp_path):
    filepath = tmp_path / "addresses" / "mumbai" / "fantium.json"
    write_address_record(proxy_record(PROXY, IMPLEMENTATION), filepath)

    with open(filepath) as file:
        assert json.load(file) == {"proxy": PROXY, "implementation": IMPLEMENTATION}
    # pretty printed
    assert filepath.read_text().startswith('{\n    "proxy"')


def test_write_replaces_existing_record(tmp_path, capsys):
    filepath = tmp_path / "fantium.json"
    filepath.write_text(json.dumps({"Fantium721V1": PROXY, "FantiumMinterV1": IMPLEMENTATION}))

    write_address_record(proxy_record(PROXY, IMPLEMENTATION), filepath)

    assert read_address_record(filepath) == {"proxy": PROXY, "implementation": IMPLEMENTATION}
    assert "Overwriting existing address record" in capsys.readouterr().out


def test_write_empty_record(tmp_path):
    filepath = tmp_path / "fantium.json"
    with pytest.raises(ValueError, match="No addresses provided"):
        write_address_record(dict(), filepath)
    assert not filepath.exists()


def test_write_invalid_address_leaves_file_untouched(tmp_path):
    filepath = tmp_path / "fantium.json"
    filepath.write_text(json.dumps(proxy_record(PROXY, IMPLEMENTATION)))
    before = filepath.read_text()

    with pytest.raises(ValueError):
        write_address_record({"proxy": "not-an-address"}, filepath)
    assert filepath.read_text() == before


def test_read_proxy_record(tmp_path):
    filepath = tmp_path / "fantium.json"
    filepath.write_text(json.dumps({"proxy": PROXY.lower(), "implementation": IMPLEMENTATION}))

    record = read_proxy_record(filepath)
    assert record.proxy == PROXY
    assert record.implementation == IMPLEMENTATION


def test_read_proxy_record_from_contracts_record(tmp_path):
    filepath = tmp_path / "contractAddresses.json"
    filepath.write_text(json.dumps({"Fantium721V1": PROXY}))
    with pytest.raises(ValueError, match="missing proxy, implementation"):
        read_proxy_record(filepath)


def test_read_missing_record(tmp_path):
    with pytest.raises(FileNotFoundError):
        read_address_record(tmp_path / "missing.json")


def test_read_malformed_record(tmp_path):
    filepath = tmp_path / "fantium.json"
    filepath.write_text(json.dumps([PROXY, IMPLEMENTATION]))
    with pytest.raises(ValueError, match="Malformed"):
        read_address_record(filepath)


def test_contracts_record():
    fantium_721 = FakeContainer("Fantium721V1").at(PROXY.lower())
    minter = FakeContainer("FantiumMinterV1").at(IMPLEMENTATION)

    record = contracts_record([fantium_721, minter])
    assert record == {"Fantium721V1": PROXY, "FantiumMinterV1": IMPLEMENTATION}


def test_contracts_record_duplicate_names():
    container = FakeContainer("Fantium721V1")
    with pytest.raises(ValueError, match="Duplicate contract name"):
        contracts_record([container.at(PROXY), container.at(IMPLEMENTATION)])
