#!/usr/bin/python3

import click
from ape import project
from ape.cli import ConnectedProviderCommand, network_option

from fantium_deployment.constants import CONSTRUCTOR_PARAMS_DIR
from fantium_deployment.options import auto_option, verify_option
from fantium_deployment.params import Deployer

CONSTRUCTOR_PARAMS_FILEPATH = CONSTRUCTOR_PARAMS_DIR / "mumbai" / "fantium.yml"


@click.command(cls=ConnectedProviderCommand, name="deploy-fantium")
@network_option(required=True)
@auto_option
@verify_option
def cli(network, auto, verify):
    """
    Deploys FantiumNFT behind a UUPS proxy and records the proxy/implementation pair.

    ape run mumbai deploy_fantium --network polygon:mumbai:node
    """
    deployer = Deployer.from_yaml(
        filepath=CONSTRUCTOR_PARAMS_FILEPATH, verify=verify, autosign=auto
    )
    fantium_nft = deployer.deploy(project.FantiumNFT)
    deployer.finalize(deployments=[fantium_nft])


if __name__ == "__main__":
    cli()
