import itertools
from types import SimpleNamespace

import pytest
from eth_utils import to_checksum_address

from fantium_deployment import params, utils
from fantium_deployment.networks import NetworkConfig
from fantium_deployment.upgrades import Upgrades

# Common constants
MUMBAI_CHAIN_ID = 80001
UUPS_METHODS = [
    ("upgradeToAndCall", [("newImplementation", "address"), ("data", "bytes")]),
    ("proxiableUUID", []),
]
NFT_INITIALIZER = ("initialize", [("_name", "string"), ("_symbol", "string"), ("_admin", "address")])

_addresses = itertools.count(1)


# Utility functions
def new_address():
    return to_checksum_address(f"0x{next(_addresses):040x}")


def abi_inputs(inputs):
    return [SimpleNamespace(name=name, type=type_) for name, type_ in inputs]


class FakeABI(SimpleNamespace):
    def model_dump(self, mode="python", by_alias=False):
        return dict(type=self.type, name=self.name, inputs=[])


class FakeMethod:
    def __init__(self, instance, name):
        self.instance = instance
        self.name = name

    def encode_input(self, *args):
        return f"{self.name}{args}".encode()

    def __call__(self, *args, sender=None):
        self.instance.container.transactions.append((self.instance.address, self.name, args))


class FakeInstance:
    def __init__(self, container, address):
        self.container = container
        self.contract_type = container.contract_type
        self.address = address

    def __getattr__(self, name):
        if name.startswith("_"):
            raise AttributeError(name)
        if name not in {abi.name for abi in self.contract_type.methods}:
            raise AttributeError(name)
        return FakeMethod(self, name)


class FakeContainer:
    """Stands in for an ape ContractContainer of a compiled contract."""

    def __init__(self, name, constructor=(), methods=(), size=1024):
        self.contract_type = SimpleNamespace(
            name=name,
            source_id=f"contracts/{name}.sol",
            methods=[
                SimpleNamespace(name=method_name, inputs=abi_inputs(inputs))
                for method_name, inputs in methods
            ],
            abi=[FakeABI(type="function", name=method_name) for method_name, _ in methods],
            runtime_bytecode=SimpleNamespace(bytecode="0x" + "60" * size),
        )
        self.constructor = SimpleNamespace(abi=SimpleNamespace(inputs=abi_inputs(constructor)))
        self.transactions = []

    def at(self, address):
        return FakeInstance(self, address)


class FakeAccount:
    def __init__(self):
        self.address = new_address()
        self.balance = 10**18
        self.autosign = None
        self.passphrase = None
        self.deployed = []

    def set_autosign(self, enabled, passphrase=None):
        self.autosign = enabled
        self.passphrase = passphrase

    def deploy(self, container, *args, **kwargs):
        self.deployed.append((container.contract_type.name, args, kwargs))
        return container.at(new_address())


class FakeUpgrades(Upgrades):
    """In-memory proxies mapping proxy address to implementation address."""

    def __init__(self, incompatible=()):
        self.implementations = dict()
        self.incompatible = set(incompatible)
        self.calls = []

    def deploy_proxy(self, container, args, initializer, kind, sender, **kwargs):
        self.calls.append(("deploy_proxy", container.contract_type.name, list(args), initializer))
        implementation = sender.deploy(container, **kwargs)
        proxy_address = new_address()
        self.implementations[proxy_address] = implementation.address
        return container.at(proxy_address)

    def validate_upgrade(self, proxy_address, container, kind):
        self.calls.append(("validate_upgrade", proxy_address, container.contract_type.name))
        self.get_implementation_address(proxy_address)
        if container.contract_type.name in self.incompatible:
            raise self.StorageLayoutIncompatible(
                f"{container.contract_type.name} storage layout is incompatible"
            )

    def upgrade_proxy(self, proxy_address, container, kind, sender, call=None, **kwargs):
        self.calls.append(("upgrade_proxy", proxy_address, container.contract_type.name, call))
        implementation = sender.deploy(container, **kwargs)
        self.implementations[proxy_address] = implementation.address
        return container.at(proxy_address)

    def get_implementation_address(self, proxy_address):
        try:
            return self.implementations[proxy_address]
        except KeyError:
            raise self.NotAProxy(f"{proxy_address} is not a proxy")

    def get_admin_address(self, proxy_address):
        return None


# Fixtures
@pytest.fixture
def contracts():
    nft_methods = [NFT_INITIALIZER, *UUPS_METHODS]
    containers = [
        FakeContainer("FantiumNFT", methods=nft_methods),
        FakeContainer(
            "FantiumNFTV2",
            methods=[*nft_methods, ("initializeV2", [("_fee", "uint256")])],
        ),
        FakeContainer("FantiumNFTV3_Broken", methods=nft_methods),
        FakeContainer(
            "Fantium721V1",
            constructor=[("_name", "string"), ("_symbol", "string"), ("_projectId", "uint256")],
        ),
        FakeContainer("FantiumMinterV1", constructor=[("_fantium721", "address")]),
    ]
    return {container.contract_type.name: container for container in containers}


@pytest.fixture
def account():
    return FakeAccount()


@pytest.fixture
def fake_upgrades():
    return FakeUpgrades(incompatible=["FantiumNFTV3_Broken"])


@pytest.fixture
def offline(monkeypatch, contracts):
    """Runs the deployer against the fakes, connected to Mumbai."""
    monkeypatch.setattr(utils, "get_chain_id", lambda: MUMBAI_CHAIN_ID)
    monkeypatch.setattr(utils, "is_local_network", lambda: False)
    monkeypatch.setattr(params, "get_contract_container", lambda name: contracts[name])
    monkeypatch.setattr(params, "get_network_config", lambda: NetworkConfig("", "", ""))
    monkeypatch.setattr(params.Deployer, "_print_deployment_info", lambda self: None)


@pytest.fixture
def records_dir(tmp_path):
    return tmp_path / "addresses"


@pytest.fixture
def make_config(records_dir):
    def _make_config(contracts, filename="record.json", constants=None, chain_id=MUMBAI_CHAIN_ID):
        config = {
            "deployment": {"name": "test", "chain_id": chain_id},
            "artifacts": {"dir": str(records_dir), "filename": filename},
            "contracts": contracts,
        }
        if constants:
            config["constants"] = constants
        return config

    return _make_config


@pytest.fixture
def make_deployer(offline, account, fake_upgrades, tmp_path):
    def _make_deployer(config, autosign=True):
        return params.Deployer(
            config=config,
            path=tmp_path / "params.yml",
            verify=False,
            account=account,
            autosign=autosign,
            upgrades=fake_upgrades,
        )

    return _make_deployer
