from collections import OrderedDict

from ape.utils import ZERO_ADDRESS


def _abort() -> None:
    print("Aborting deployment!")
    exit(-1)


def _confirm_deployment(contract_name: str) -> None:
    """Asks the user to confirm the deployment of a single contract."""
    answer = input(f"Deploy {contract_name} Y/N? ")
    if answer.lower().strip() == "n":
        _abort()


def _continue() -> None:
    """Asks the user to continue."""
    answer = input("Continue Y/N? ")
    if answer.lower().strip() == "n":
        _abort()


def _confirm_zero_address() -> None:
    answer = input("Zero Address detected for deployment parameter; Continue? Y/N? ")
    if answer.lower().strip() == "n":
        _abort()


def _print_params(resolved_params: OrderedDict) -> bool:
    """Prints resolved parameters; returns True if any of them is the zero address."""
    contains_zero_address = False
    for name, resolved_value in resolved_params.items():
        print(f"\t{name}={resolved_value}")
        if not contains_zero_address:
            contains_zero_address = resolved_value == ZERO_ADDRESS
    return contains_zero_address


def _confirm_resolution(resolved_params: OrderedDict, contract_name: str) -> None:
    """Asks the user to confirm the resolved constructor parameters for a single contract."""
    if len(resolved_params) == 0:
        print(f"\n(i) No constructor parameters for {contract_name}")
        _confirm_deployment(contract_name)
        return

    print(f"\nConstructor parameters for {contract_name}")
    contains_zero_address = _print_params(resolved_params)
    _confirm_deployment(contract_name)
    if contains_zero_address:
        _confirm_zero_address()


def _confirm_proxy_resolution(
    resolved_args: OrderedDict, contract_name: str, kind: str, initializer: str
) -> None:
    """Asks the user to confirm a proxied deployment and its initializer arguments."""
    print(f"\n{kind.upper()} proxy for {contract_name}, initialized with {initializer}:")
    contains_zero_address = _print_params(resolved_args)
    _confirm_deployment(contract_name)
    if contains_zero_address:
        _confirm_zero_address()


def _confirm_upgrade(contract_name: str, proxy_address: str, current_implementation: str) -> None:
    """Asks the user to confirm the upgrade of a proxy to a new implementation."""
    print(
        f"\nUpgrading {proxy_address} (currently {current_implementation}) to {contract_name}."
    )
    answer = input(f"Upgrade to {contract_name} Y/N? ")
    if answer.lower().strip() == "n":
        _abort()
