import os
from functools import lru_cache
from pathlib import Path
from typing import NamedTuple
from urllib.parse import urlparse

import click
from ape import accounts, networks
from ape.api import AccountAPI
from ape.cli.choices import select_account
from ape_accounts import import_account_from_private_key
from dotenv import load_dotenv
from eth_account import Account

from fantium_deployment.constants import (
    DEPLOYER_ACCOUNT_ALIAS,
    DEPLOYER_PASSPHRASE_ENVVAR,
    DOTENV_FILEPATH,
    EXPLORER_API_KEY_ENVVAR,
    LOCAL_BLOCKCHAIN_ENVIRONMENTS,
    PRIVATE_KEY_ENVVAR,
    RPC_URL_ENVVAR,
)


class NetworkConfig(NamedTuple):
    """Process-wide network settings read from the environment."""

    rpc_url: str
    private_key: str
    explorer_api_key: str

    @property
    def account_key(self) -> str:
        """The signer private key, always 0x-prefixed."""
        if not self.private_key or self.private_key.startswith("0x"):
            return self.private_key
        return "0x" + self.private_key

    @property
    def rpc_host(self) -> str:
        """The RPC host, without the path that usually carries the provider key."""
        return urlparse(self.rpc_url).netloc


def load_network_config(dotenv_path: Path = DOTENV_FILEPATH) -> NetworkConfig:
    """
    Loads the network settings from the environment, after reading an optional .env file.
    Variables already present in the environment take precedence over the .env file.
    Missing values are left empty; they surface later as connection or signing failures.
    """
    load_dotenv(dotenv_path=dotenv_path, override=False)
    return NetworkConfig(
        rpc_url=os.environ.get(RPC_URL_ENVVAR, ""),
        private_key=os.environ.get(PRIVATE_KEY_ENVVAR, ""),
        explorer_api_key=os.environ.get(EXPLORER_API_KEY_ENVVAR, ""),
    )


@lru_cache(maxsize=None)
def get_network_config() -> NetworkConfig:
    return load_network_config()


def is_local_network() -> bool:
    return networks.provider.network.name in LOCAL_BLOCKCHAIN_ENVIRONMENTS


def get_chain_id() -> int:
    return networks.provider.network.chain_id


def _get_passphrase() -> str:
    passphrase = os.environ.get(DEPLOYER_PASSPHRASE_ENVVAR)
    if passphrase is None:
        passphrase = click.prompt(
            f"Passphrase for '{DEPLOYER_ACCOUNT_ALIAS}' account", hide_input=True
        )
    return passphrase


def load_private_key_account(
    private_key: str, alias: str = DEPLOYER_ACCOUNT_ALIAS
) -> AccountAPI:
    """
    Loads the keyfile account for the given private key, importing it on first use.
    An existing account under the alias must hold the same key.
    """
    expected_address = Account.from_key(private_key).address
    if alias not in accounts.aliases:
        print(f"Importing signer into ape account '{alias}'...")
        account = import_account_from_private_key(alias, _get_passphrase(), private_key)
        print(f"Account imported: {account.address}")

    account = accounts.load(alias)
    if account.address != expected_address:
        raise ValueError(
            f"Ape account '{alias}' is {account.address} but {PRIVATE_KEY_ENVVAR} "
            f"belongs to {expected_address}. Delete the account with "
            f"'ape accounts delete {alias}' to import the new key."
        )
    return account


def resolve_account(network_config: NetworkConfig) -> AccountAPI:
    """
    Selects the signer for a deployment:
    the first test account on local networks, the PRIVATE_KEY account when one is
    configured, or an interactively selected ape account otherwise.
    """
    if is_local_network():
        return accounts.test_accounts[0]
    if network_config.private_key:
        return load_private_key_account(network_config.account_key)
    return select_account()
