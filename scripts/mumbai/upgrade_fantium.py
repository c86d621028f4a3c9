#!/usr/bin/python3

import click
from ape import project
from ape.cli import ConnectedProviderCommand, network_option

from fantium_deployment.constants import CONSTRUCTOR_PARAMS_DIR
from fantium_deployment.options import auto_option, proxy_address_option, verify_option
from fantium_deployment.params import Deployer

CONSTRUCTOR_PARAMS_FILEPATH = CONSTRUCTOR_PARAMS_DIR / "mumbai" / "upgrade-fantium.yml"


@click.command(cls=ConnectedProviderCommand, name="upgrade-fantium")
@network_option(required=True)
@proxy_address_option
@auto_option
@verify_option
def cli(network, proxy_address, auto, verify):
    """
    Upgrades the production FantiumNFT proxy to FantiumNFTV2.

    The new implementation is validated against the proxy before it is deployed.
    """
    deployer = Deployer.from_yaml(
        filepath=CONSTRUCTOR_PARAMS_FILEPATH, verify=verify, autosign=auto
    )
    fantium_nft = deployer.upgrade(project.FantiumNFTV2, proxy_address=proxy_address)
    deployer.finalize(deployments=[fantium_nft])


if __name__ == "__main__":
    cli()
