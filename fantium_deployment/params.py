import os
import typing
from abc import ABC, abstractmethod
from collections import OrderedDict
from pathlib import Path
from typing import Any, Dict, List, Optional

from ape import networks
from ape.api import AccountAPI
from ape.cli.choices import select_account
from ape.contracts.base import ContractContainer, ContractInstance
from ape.utils import ZERO_ADDRESS
from ape_accounts import KeyfileAccount
from web3.auto import w3

from fantium_deployment.confirm import (
    _confirm_proxy_resolution,
    _confirm_resolution,
    _confirm_upgrade,
    _continue,
)
from fantium_deployment.constants import (
    DEFAULT_INITIALIZER,
    DEFAULT_PROXY_KIND,
    DEPLOYER_PASSPHRASE_ENVVAR,
    SUPPORTED_PROXY_KINDS,
)
from fantium_deployment.networks import get_network_config, resolve_account
from fantium_deployment.records import (
    AddressRecord,
    contracts_record,
    proxy_record,
    read_proxy_record,
    write_address_record,
)
from fantium_deployment.upgrades import ApeUpgrades, UpgradeCall, Upgrades
from fantium_deployment.utils import (
    _load_yaml,
    check_contract_size,
    check_plugins,
    get_contract_container,
    validate_config,
)

CONTRACT_CONSTRUCTOR_PARAMETER_KEY = "constructor"
CONTRACT_PROXY_PARAMETER_KEY = "proxy"
CONTRACT_UPGRADE_PARAMETER_KEY = "upgrade"


class VariableContext:
    def __init__(
        self,
        contract_names: List[str],
        contract_name: str,
        constants: typing.Dict[str, Any] = None,
    ):
        self.contract_names = contract_names or list()
        self.contract_name = contract_name
        self.constants = constants or dict()


# Variables


class Variable(ABC):
    VARIABLE_PREFIX = "$"

    @abstractmethod
    def resolve(self) -> Any:
        raise NotImplementedError

    @classmethod
    def is_variable(cls, param: Any) -> bool:
        """Returns True if the param is a variable."""
        result = isinstance(param, str) and param.startswith(cls.VARIABLE_PREFIX)
        return result


class DeployerAccount(Variable):
    DEPLOYER_INDICATOR = "deployer"

    @classmethod
    def is_deployer(cls, value: str) -> bool:
        """Returns True if the variable is a special deployer variable."""
        return value == cls.DEPLOYER_INDICATOR

    def resolve(self) -> Any:
        deployer_account = Deployer.get_account()
        if deployer_account is None:
            return ZERO_ADDRESS
        return deployer_account.address


class Constant(Variable):
    def __init__(self, constant_name: str, context: VariableContext):
        try:
            self.constant_value = context.constants[constant_name]
        except KeyError:
            raise ValueError(f"Constant '{constant_name}' not found in deployment file.")

    @classmethod
    def is_constant(cls, value: str) -> bool:
        """Returns True if the variable is a deployment constant."""
        return value.isupper()

    def resolve(self) -> Any:
        return self.constant_value


class ContractName(Variable):
    def __init__(self, contract_name: str, context: VariableContext):
        if contract_name not in context.contract_names:
            raise ValueError(f"Contract name {contract_name} not found")

        self.contract_name = contract_name

    def resolve(self) -> Any:
        """Resolves the address of a contract deployed earlier in the same run."""
        contract_instance = Deployer.get_deployment(self.contract_name)
        if contract_instance is None:
            # eager validation
            return ZERO_ADDRESS
        return contract_instance.address


def _resolve_param(value: Any) -> Any:
    """Resolves a single parameter value or a list of parameter values."""
    if isinstance(value, list):
        return [_resolve_param(v) for v in value]

    if isinstance(value, Variable):
        return value.resolve()

    return value  # literally a value


def _resolve_params(parameters: OrderedDict) -> OrderedDict:
    resolved_parameters = OrderedDict()
    for name, value in parameters.items():
        resolved_parameters[name] = _resolve_param(value)

    return resolved_parameters


def _variable_from_value(variable: Any, context: VariableContext) -> Variable:
    variable = variable.strip(Variable.VARIABLE_PREFIX)
    if DeployerAccount.is_deployer(variable):
        return DeployerAccount()
    elif Constant.is_constant(variable):
        return Constant(variable, context)
    else:
        return ContractName(variable, context)


def _process_raw_value(value: Any, variable_context: VariableContext) -> Any:
    if isinstance(value, list):
        return [_process_raw_value(v, variable_context) for v in value]

    if Variable.is_variable(value):
        value = _variable_from_value(value, variable_context)

    return value


def _process_raw_values(values: OrderedDict, variable_context: VariableContext) -> OrderedDict:
    processed_parameters = OrderedDict()
    for name, value in (values or dict()).items():
        processed_parameters[name] = _process_raw_value(value, variable_context)

    return processed_parameters


def _get_contract_names(config: typing.Dict) -> List[str]:
    contract_names = list()
    for contract_info in config["contracts"]:
        if isinstance(contract_info, str):
            contract_names.append(contract_info)
        elif isinstance(contract_info, dict):
            contract_names.extend(list(contract_info.keys()))
        else:
            raise ValueError("Malformed constructor parameters YAML.")

    return contract_names


def _get_contracts_data(config: typing.Dict) -> typing.Iterator[typing.Tuple[str, Dict]]:
    """Yields (contract name, contract data) for every contract entry with parameters."""
    for contract_info in config["contracts"]:
        if isinstance(contract_info, str):
            continue
        if not isinstance(contract_info, dict) or len(contract_info) != 1:
            raise ValueError("Malformed constructor parameters YAML.")

        contract_name = list(contract_info.keys())[0]  # only one entry
        yield contract_name, contract_info[contract_name] or dict()


def _validate_method_args(
    method_abis: List[Any], args: typing.Sequence[Any]
) -> typing.Dict[str, Any]:
    """Validates the transaction arguments against the function ABI."""
    if len(method_abis) == 0:
        raise ValueError("No method abis provided for validation of args")

    abis_matching_args_length = [abi for abi in method_abis if len(abi.inputs) == len(args)]
    for abi in abis_matching_args_length:
        named_args = {}
        for arg, abi_input in zip(args, abi.inputs):
            if not w3.is_encodable(abi_input.type, arg):
                break
            named_args[abi_input.name] = arg
        else:
            return named_args
    raise ValueError(
        f"Could not find ABI for '{method_abis[0].name}' with {len(args)} arg(s) and given type(s)"
    )


def _get_method_abis(contract_container: ContractContainer, method_name: str) -> List[Any]:
    contract_method_abis = contract_container.contract_type.methods
    return [abi for abi in contract_method_abis if abi.name == method_name]


def _validate_constructor_abi_inputs(
    contract_name: str,
    abi_inputs: List[Any],
    resolved_parameters: OrderedDict,
) -> None:
    """Validates the constructor parameters against the constructor ABI."""
    if len(resolved_parameters) != len(abi_inputs):
        raise ConstructorParameters.Invalid(
            f"Constructor parameters length mismatch - "
            f"{contract_name} ABI requires {len(abi_inputs)}, Got {len(resolved_parameters)}."
        )

    codex = enumerate(zip(abi_inputs, resolved_parameters.items()), start=0)
    for position, (abi_input, resolved_input) in codex:
        name, value = resolved_input
        if not w3.is_encodable(abi_input.type, value):
            raise ConstructorParameters.Invalid(
                f"Constructor param name '{name}' at position {position} has a value '{value}' "
                f"whose type does not match expected ABI type '{abi_input.type}'"
            )


def validate_constructor_parameters(contracts_parameters) -> None:
    """Validates the constructor parameters for all contracts in a single config."""
    for contract, parameters in contracts_parameters.items():
        if not isinstance(parameters, dict):
            # this can happen if the yml file is malformed
            raise ValueError(f"Malformed constructor parameter config for {contract}.")

        resolved_parameters = _resolve_params(parameters=parameters)
        contract_container = get_contract_container(contract)
        _validate_constructor_abi_inputs(
            contract_name=contract,
            abi_inputs=contract_container.constructor.abi.inputs,
            resolved_parameters=resolved_parameters,
        )


class ConstructorParameters:
    """Represents the constructor parameters for a set of contracts."""

    class Invalid(Exception):
        """Raised when the constructor parameters are invalid"""

    def __init__(self, parameters: OrderedDict):
        self.parameters = parameters
        validate_constructor_parameters(parameters)

    @classmethod
    def from_config(cls, config: typing.Dict) -> "ConstructorParameters":
        """Loads the constructor parameters from a deployment config."""
        print("Processing contract constructor parameters...")
        contracts_config = OrderedDict()
        contract_names = _get_contract_names(config)
        constants = config.get("constants")
        for contract_name in contract_names:
            contracts_config[contract_name] = OrderedDict()

        for contract_name, contract_data in _get_contracts_data(config):
            if CONTRACT_CONSTRUCTOR_PARAMETER_KEY not in contract_data:
                continue
            contracts_config[contract_name] = _process_raw_values(
                contract_data[CONTRACT_CONSTRUCTOR_PARAMETER_KEY],
                VariableContext(
                    contract_names=contract_names, constants=constants, contract_name=contract_name
                ),
            )

        return cls(parameters=contracts_config)

    def resolve(self, contract_name: str) -> OrderedDict:
        """Resolves the constructor parameters for a single contract."""
        if contract_name not in self.parameters:
            raise ValueError(f"Contract {contract_name} is not part of this deployment.")
        resolved_params = _resolve_params(self.parameters[contract_name])
        return resolved_params


def _validate_call(
    contract_name: str, method_name: str, resolved_args: OrderedDict, error_class
) -> None:
    """Validates a call to `method_name` of a contract against its ABI."""
    contract_container = get_contract_container(contract_name)
    method_abis = _get_method_abis(contract_container, method_name)
    if not method_abis:
        raise error_class(f"{contract_name} has no method named '{method_name}'.")
    try:
        _validate_method_args(method_abis=method_abis, args=list(resolved_args.values()))
    except ValueError as e:
        raise error_class(f"Invalid arguments for {contract_name}.{method_name}: {e}") from e


def _validate_proxy_kind(contract_name: str, kind: str, error_class) -> None:
    if kind not in SUPPORTED_PROXY_KINDS:
        raise error_class(
            f"Unsupported proxy kind '{kind}' for {contract_name}; "
            f"expected one of {', '.join(SUPPORTED_PROXY_KINDS)}."
        )


class ProxyParameters:
    """Represents the proxy parameters for contracts deployed behind a new proxy"""

    KIND = "kind"
    INITIALIZER = "initializer"
    ARGS = "args"

    class Invalid(Exception):
        """Raised when the proxy parameters are invalid"""

    class ProxyInfo(typing.NamedTuple):
        kind: str
        initializer: str
        args: OrderedDict

    def __init__(self, contracts_proxy_info: OrderedDict):
        self.contracts_proxy_info = contracts_proxy_info
        for contract_name, proxy_info in contracts_proxy_info.items():
            _validate_proxy_kind(contract_name, proxy_info.kind, self.Invalid)
            _validate_call(
                contract_name=contract_name,
                method_name=proxy_info.initializer,
                resolved_args=_resolve_params(proxy_info.args),
                error_class=self.Invalid,
            )

    @classmethod
    def from_config(cls, config: typing.Dict) -> "ProxyParameters":
        """Loads the proxy parameters from a deployment config."""
        print("Processing proxy parameters...")
        contract_names = _get_contract_names(config)
        constants = config.get("constants")

        contracts_proxy_info = OrderedDict()
        for contract_name, contract_data in _get_contracts_data(config):
            if CONTRACT_PROXY_PARAMETER_KEY not in contract_data:
                continue
            if CONTRACT_UPGRADE_PARAMETER_KEY in contract_data:
                raise cls.Invalid(
                    f"{contract_name} cannot declare both '{CONTRACT_PROXY_PARAMETER_KEY}' "
                    f"and '{CONTRACT_UPGRADE_PARAMETER_KEY}'."
                )

            proxy_data = contract_data[CONTRACT_PROXY_PARAMETER_KEY] or dict()
            proxy_info = cls.ProxyInfo(
                kind=proxy_data.get(cls.KIND, DEFAULT_PROXY_KIND),
                initializer=proxy_data.get(cls.INITIALIZER, DEFAULT_INITIALIZER),
                args=_process_raw_values(
                    proxy_data.get(cls.ARGS),
                    VariableContext(
                        contract_names=contract_names,
                        constants=constants,
                        contract_name=contract_name,
                    ),
                ),
            )
            contracts_proxy_info.update({contract_name: proxy_info})

        return cls(contracts_proxy_info=contracts_proxy_info)

    def contract_needs_proxy(self, contract_name) -> bool:
        proxy_info = self.contracts_proxy_info.get(contract_name)
        return proxy_info is not None

    def resolve(self, contract_name: str) -> ProxyInfo:
        """Resolves the proxy data for a single contract."""
        proxy_info = self.contracts_proxy_info.get(contract_name)
        if not proxy_info:
            raise ValueError(f"Unexpected contract to proxy: {contract_name}")

        return proxy_info._replace(args=_resolve_params(proxy_info.args))


class UpgradeParameters:
    """Represents the parameters for contracts that upgrade an existing proxy"""

    KIND = "kind"
    RECORD = "record"
    CALL = "call"
    CALL_METHOD = "method"
    CALL_ARGS = "args"

    class Invalid(Exception):
        """Raised when the upgrade parameters are invalid"""

    class UpgradeInfo(typing.NamedTuple):
        kind: str
        record_filepath: Path
        call_method: Optional[str]
        call_args: OrderedDict

    def __init__(self, contracts_upgrade_info: OrderedDict):
        self.contracts_upgrade_info = contracts_upgrade_info
        for contract_name, upgrade_info in contracts_upgrade_info.items():
            _validate_proxy_kind(contract_name, upgrade_info.kind, self.Invalid)
            if upgrade_info.call_method:
                _validate_call(
                    contract_name=contract_name,
                    method_name=upgrade_info.call_method,
                    resolved_args=_resolve_params(upgrade_info.call_args),
                    error_class=self.Invalid,
                )

    @classmethod
    def from_config(cls, config: typing.Dict, records_dir: Path) -> "UpgradeParameters":
        """
        Loads the upgrade parameters from a deployment config.
        Record filenames are relative to `records_dir`; by default a contract upgrades the
        proxy found in the address record this deployment writes.
        """
        print("Processing upgrade parameters...")
        contract_names = _get_contract_names(config)
        constants = config.get("constants")
        default_record = config.get("artifacts", {}).get("filename")

        contracts_upgrade_info = OrderedDict()
        for contract_name, contract_data in _get_contracts_data(config):
            if CONTRACT_UPGRADE_PARAMETER_KEY not in contract_data:
                continue

            upgrade_data = contract_data[CONTRACT_UPGRADE_PARAMETER_KEY] or dict()
            record = upgrade_data.get(cls.RECORD, default_record)
            if not record:
                raise cls.Invalid(f"No address record to upgrade for {contract_name}.")

            call_data = upgrade_data.get(cls.CALL) or dict()
            if call_data and cls.CALL_METHOD not in call_data:
                raise cls.Invalid(f"Upgrade call for {contract_name} is missing a method name.")

            upgrade_info = cls.UpgradeInfo(
                kind=upgrade_data.get(cls.KIND, DEFAULT_PROXY_KIND),
                record_filepath=Path(records_dir) / record,
                call_method=call_data.get(cls.CALL_METHOD),
                call_args=_process_raw_values(
                    call_data.get(cls.CALL_ARGS),
                    VariableContext(
                        contract_names=contract_names,
                        constants=constants,
                        contract_name=contract_name,
                    ),
                ),
            )
            contracts_upgrade_info.update({contract_name: upgrade_info})

        return cls(contracts_upgrade_info=contracts_upgrade_info)

    def contract_needs_upgrade(self, contract_name) -> bool:
        return contract_name in self.contracts_upgrade_info

    def resolve(self, contract_name: str) -> typing.Tuple[str, Path, Optional[UpgradeCall]]:
        """Resolves the proxy kind, source address record and upgrade call for a contract."""
        upgrade_info = self.contracts_upgrade_info.get(contract_name)
        if not upgrade_info:
            raise ValueError(f"Unexpected contract to upgrade: {contract_name}")

        call = None
        if upgrade_info.call_method:
            resolved_args = _resolve_params(upgrade_info.call_args)
            call = UpgradeCall(method=upgrade_info.call_method, args=list(resolved_args.values()))
        return upgrade_info.kind, upgrade_info.record_filepath, call


class Transactor:
    """
    Represents an ape account plus its transaction signing preference.
    """

    def __init__(self, account: typing.Optional[AccountAPI] = None, autosign: bool = False):
        if account is None:
            self._account = select_account()
        else:
            self._account = account
        if autosign:
            print("WARNING: Autosign is enabled. Transactions will be signed automatically.")
        self._autosign = autosign
        # only keyfile accounts prompt before signing
        if isinstance(self._account, KeyfileAccount):
            passphrase = os.environ.get(DEPLOYER_PASSPHRASE_ENVVAR)
            self._account.set_autosign(autosign, passphrase=passphrase)

    def get_account(self) -> AccountAPI:
        """Returns the transactor account."""
        return self._account


class Deployer(Transactor):
    """
    Represents an ape account plus deployment parameters for a set of contracts,
    plus validated/annotated execution and the address record of the deployment.
    """

    __DEPLOYER_ACCOUNT: AccountAPI = None
    __DEPLOYMENTS: Dict[str, ContractInstance] = dict()

    def __init__(
        self,
        config: typing.Dict,
        path: Path,
        verify: bool,
        account: typing.Optional[AccountAPI] = None,
        autosign: bool = False,
        upgrades: typing.Optional[Upgrades] = None,
    ):
        self.network_config = get_network_config()
        if account is None:
            account = resolve_account(self.network_config)
        super().__init__(account, autosign)

        if verify:
            check_plugins(self.network_config)
        self.path = path
        self.config = config
        self.record_filepath = validate_config(config=self.config)

        self._set_account(self._account)
        self._clear_deployments()
        self.constructor_parameters = ConstructorParameters.from_config(self.config)
        self.proxy_parameters = ProxyParameters.from_config(self.config)
        self.upgrade_parameters = UpgradeParameters.from_config(
            self.config, records_dir=self.record_filepath.parent
        )

        self.upgrades = upgrades or ApeUpgrades()
        self.verify = verify
        self._print_deployment_info()

        if not self._autosign:
            # Confirms the start of the deployment.
            _continue()

    @classmethod
    def from_yaml(cls, filepath: Path, *args, **kwargs) -> "Deployer":
        config = _load_yaml(filepath)
        return cls(config=config, path=filepath, *args, **kwargs)

    @classmethod
    def get_account(cls) -> AccountAPI:
        """Returns the deployer account."""
        return cls.__DEPLOYER_ACCOUNT

    @classmethod
    def _set_account(cls, deployer: AccountAPI) -> None:
        """Sets the deployer account."""
        cls.__DEPLOYER_ACCOUNT = deployer

    @classmethod
    def get_deployment(cls, contract_name: str) -> Optional[ContractInstance]:
        """Returns the instance of a contract deployed during this run, if any."""
        return cls.__DEPLOYMENTS.get(contract_name)

    @classmethod
    def _add_deployment(cls, contract_name: str, instance: ContractInstance) -> None:
        cls.__DEPLOYMENTS[contract_name] = instance

    @classmethod
    def _clear_deployments(cls) -> None:
        cls.__DEPLOYMENTS = dict()

    def _get_kwargs(self) -> typing.Dict[str, Any]:
        """Returns the deployment kwargs."""
        return {"publish": self.verify}

    def deploy(self, container: ContractContainer) -> ContractInstance:
        """Deploys a contract, behind a new proxy if its parameters declare one."""
        contract_name = container.contract_type.name
        check_contract_size(container)

        if self.proxy_parameters.contract_needs_proxy(contract_name):
            instance = self._deploy_proxy(container)
        else:
            resolved_constructor_params = self.constructor_parameters.resolve(contract_name)
            instance = self._deploy_contract(container, resolved_constructor_params)

        print(f"{contract_name} deployed to: {instance.address}")
        self._add_deployment(contract_name, instance)
        return instance

    def _deploy_contract(
        self, container: ContractContainer, resolved_params: OrderedDict
    ) -> ContractInstance:
        contract_name = container.contract_type.name
        if not self._autosign:
            _confirm_resolution(resolved_params, contract_name)
        deployment_params = [container, *resolved_params.values()]
        kwargs = self._get_kwargs()

        deployer_account = self.get_account()
        return deployer_account.deploy(*deployment_params, **kwargs)

    def _deploy_proxy(self, container: ContractContainer) -> ContractInstance:
        contract_name = container.contract_type.name
        proxy_info = self.proxy_parameters.resolve(contract_name)
        if not self._autosign:
            _confirm_proxy_resolution(
                proxy_info.args, contract_name, proxy_info.kind, proxy_info.initializer
            )

        print(f"\nDeploying {contract_name} behind a {proxy_info.kind} proxy.")
        return self.upgrades.deploy_proxy(
            container,
            list(proxy_info.args.values()),
            initializer=proxy_info.initializer,
            kind=proxy_info.kind,
            sender=self.get_account(),
            **self._get_kwargs(),
        )

    def upgrade(self, container: ContractContainer, proxy_address=None) -> ContractInstance:
        """
        Upgrades an existing proxy to a new implementation of `container`.
        Without an explicit proxy address, the proxy is read from the address record
        named by the contract's upgrade parameters. The upgrade is validated before
        anything is sent to the network.
        """
        contract_name = container.contract_type.name
        kind, record_filepath, call = self.upgrade_parameters.resolve(contract_name)
        if proxy_address is None:
            proxy_address = read_proxy_record(record_filepath).proxy

        check_contract_size(container)
        self.upgrades.validate_upgrade(proxy_address, container, kind)

        if not self._autosign:
            current_implementation = self.upgrades.get_implementation_address(proxy_address)
            _confirm_upgrade(contract_name, proxy_address, current_implementation)

        instance = self.upgrades.upgrade_proxy(
            proxy_address,
            container,
            kind,
            sender=self.get_account(),
            call=call,
            **self._get_kwargs(),
        )
        print(f"{contract_name} upgraded at: {instance.address}")
        self._add_deployment(contract_name, instance)
        return instance

    def _is_proxied(self, contract_name: str) -> bool:
        return self.proxy_parameters.contract_needs_proxy(
            contract_name
        ) or self.upgrade_parameters.contract_needs_upgrade(contract_name)

    def get_address_record(self, deployments: List[ContractInstance]) -> AddressRecord:
        """
        Returns {proxy, implementation} for a single proxied contract,
        or {contract name: address} for plain deployments.
        """
        proxied = [i for i in deployments if self._is_proxied(i.contract_type.name)]
        if not proxied:
            return contracts_record(deployments)

        if len(deployments) != 1:
            raise ValueError(
                "A proxy address record holds exactly one proxied contract; "
                f"got {len(deployments)} deployments."
            )
        proxy_address = proxied[0].address
        implementation = self.upgrades.get_implementation_address(proxy_address)
        print(f"Proxy: {proxy_address}\nImplementation: {implementation}")
        return proxy_record(proxy=proxy_address, implementation=implementation)

    def finalize(self, deployments: List[ContractInstance]) -> AddressRecord:
        """Writes the address record of the deployments, replacing any previous one."""
        record = self.get_address_record(deployments)
        write_address_record(record=record, filepath=self.record_filepath)
        return record

    def _print_deployment_info(self):
        print(
            f"Account: {self.get_account().address}",
            f"Balance: {self.get_account().balance}",
            f"Config: {self.path}",
            f"Address record: {self.record_filepath}",
            f"Verify: {self.verify}",
            f"Ecosystem: {networks.provider.network.ecosystem.name}",
            f"Network: {networks.provider.network.name}",
            f"Chain ID: {networks.provider.network.chain_id}",
            f"RPC host: {self.network_config.rpc_host or 'provider default'}",
            f"Gas Price: {networks.provider.gas_price}",
            sep="\n",
        )
