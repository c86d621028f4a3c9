import typing
from abc import ABC, abstractmethod
from typing import Any, List, Optional

from ape import chain, project
from ape.api import AccountAPI
from ape.contracts.base import ContractContainer, ContractInstance
from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address, to_int
from hexbytes import HexBytes

from fantium_deployment.constants import (
    EIP1967_ADMIN_SLOT,
    EIP1967_IMPLEMENTATION_SLOT,
    OZ_DEPENDENCY_NAME,
    OZ_DEPENDENCY_VERSION,
    SUPPORTED_PROXY_KINDS,
    TRANSPARENT,
    UUPS,
    UUPS_REQUIRED_METHODS,
)


class UpgradeCall(typing.NamedTuple):
    """A method of the new implementation to call through the proxy during an upgrade."""

    method: str
    args: List[Any]


class Upgrades(ABC):
    """
    The proxy deployment and upgrade capabilities consumed by the deployer.
    """

    class Invalid(Exception):
        """Raised when an upgrade is unsafe or cannot be performed"""

    class NotAProxy(Invalid):
        """Raised when the target address is not an EIP-1967 proxy"""

    class StorageLayoutIncompatible(Invalid):
        """Raised when the new implementation's storage layout cannot replace the current one"""

    @abstractmethod
    def deploy_proxy(
        self,
        container: ContractContainer,
        args: List[Any],
        initializer: str,
        kind: str,
        sender: AccountAPI,
        **kwargs,
    ) -> ContractInstance:
        """Deploys an implementation and a proxy initialized with `initializer(*args)`."""
        raise NotImplementedError

    @abstractmethod
    def validate_upgrade(
        self, proxy_address: ChecksumAddress, container: ContractContainer, kind: str
    ) -> None:
        """Raises Upgrades.Invalid if the proxy cannot be upgraded to the new contract."""
        raise NotImplementedError

    @abstractmethod
    def upgrade_proxy(
        self,
        proxy_address: ChecksumAddress,
        container: ContractContainer,
        kind: str,
        sender: AccountAPI,
        call: Optional[UpgradeCall] = None,
        **kwargs,
    ) -> ContractInstance:
        """Deploys a new implementation and points the proxy to it."""
        raise NotImplementedError

    @abstractmethod
    def get_implementation_address(self, proxy_address: ChecksumAddress) -> ChecksumAddress:
        raise NotImplementedError

    @abstractmethod
    def get_admin_address(self, proxy_address: ChecksumAddress) -> Optional[ChecksumAddress]:
        raise NotImplementedError


def _check_proxy_kind(kind: str) -> None:
    if kind not in SUPPORTED_PROXY_KINDS:
        raise ValueError(
            f"Unsupported proxy kind '{kind}'; expected one of {', '.join(SUPPORTED_PROXY_KINDS)}"
        )


def _check_upgradeable(container: ContractContainer, kind: str) -> None:
    """Checks that an implementation can sit behind a proxy of the given kind."""
    if kind != UUPS:
        return
    method_names = {abi.name for abi in container.contract_type.methods}
    missing = [name for name in UUPS_REQUIRED_METHODS if name not in method_names]
    if missing:
        raise Upgrades.Invalid(
            f"{container.contract_type.name} is not UUPS-upgradeable; "
            f"missing {', '.join(missing)}."
        )


class ApeUpgrades(Upgrades):
    """
    OpenZeppelin proxies deployed and upgraded through ape.
    UUPS proxies are ERC1967Proxy instances upgraded via the implementation's upgradeToAndCall;
    transparent proxies are upgraded through their ProxyAdmin.
    """

    def __init__(self, provider=None, dependency=None):
        self._provider = provider
        self._dependency = dependency

    @property
    def provider(self):
        return self._provider or chain.provider

    @property
    def dependency(self):
        if self._dependency is None:
            self._dependency = project.dependencies[OZ_DEPENDENCY_NAME][OZ_DEPENDENCY_VERSION]
        return self._dependency

    def _read_address_slot(self, address: ChecksumAddress, slot: int) -> Optional[ChecksumAddress]:
        value = HexBytes(self.provider.get_storage(address, slot))
        if to_int(value) == 0:
            return None
        return to_checksum_address(value[-20:])

    def get_implementation_address(self, proxy_address: ChecksumAddress) -> ChecksumAddress:
        implementation = self._read_address_slot(proxy_address, EIP1967_IMPLEMENTATION_SLOT)
        if implementation is None:
            raise self.NotAProxy(
                f"Implementation slot for contract at {proxy_address} is empty. "
                "Are you sure this is an EIP1967-compatible proxy?"
            )
        return implementation

    def get_admin_address(self, proxy_address: ChecksumAddress) -> Optional[ChecksumAddress]:
        return self._read_address_slot(proxy_address, EIP1967_ADMIN_SLOT)

    @staticmethod
    def _encode_call(implementation: ContractInstance, method: str, args: List[Any]) -> bytes:
        method_handler = getattr(implementation, method)
        return method_handler.encode_input(*args)

    def deploy_proxy(
        self,
        container: ContractContainer,
        args: List[Any],
        initializer: str,
        kind: str,
        sender: AccountAPI,
        **kwargs,
    ) -> ContractInstance:
        _check_proxy_kind(kind)
        _check_upgradeable(container, kind)

        implementation = sender.deploy(container, **kwargs)
        data = self._encode_call(implementation, initializer, args)
        if kind == UUPS:
            proxy = sender.deploy(
                self.dependency.ERC1967Proxy, implementation.address, data, **kwargs
            )
        else:
            proxy = sender.deploy(
                self.dependency.TransparentUpgradeableProxy,
                implementation.address,
                sender.address,
                data,
                **kwargs,
            )
        return container.at(proxy.address)

    def validate_upgrade(
        self, proxy_address: ChecksumAddress, container: ContractContainer, kind: str
    ) -> None:
        _check_proxy_kind(kind)
        self.get_implementation_address(proxy_address)

        actual_kind = TRANSPARENT if self.get_admin_address(proxy_address) else UUPS
        if actual_kind != kind:
            raise self.Invalid(
                f"Proxy at {proxy_address} is a {actual_kind} proxy, not a {kind} proxy."
            )

        _check_upgradeable(container, kind)

    def upgrade_proxy(
        self,
        proxy_address: ChecksumAddress,
        container: ContractContainer,
        kind: str,
        sender: AccountAPI,
        call: Optional[UpgradeCall] = None,
        **kwargs,
    ) -> ContractInstance:
        _check_proxy_kind(kind)
        implementation = sender.deploy(container, **kwargs)
        data = b""
        if call:
            data = self._encode_call(implementation, call.method, call.args)

        if kind == UUPS:
            proxy = container.at(proxy_address)
            proxy.upgradeToAndCall(implementation.address, data, sender=sender)
        else:
            admin_address = self.get_admin_address(proxy_address)
            if admin_address is None:
                raise self.NotAProxy(f"Admin slot for contract at {proxy_address} is empty.")
            proxy_admin = self.dependency.ProxyAdmin.at(admin_address)
            proxy_admin.upgradeAndCall(proxy_address, implementation.address, data, sender=sender)

        return container.at(proxy_address)
