#!/usr/bin/python3

import click
from ape import project
from ape.cli import ConnectedProviderCommand, network_option

from fantium_deployment.constants import CONSTRUCTOR_PARAMS_DIR
from fantium_deployment.options import auto_option, verify_option
from fantium_deployment.params import Deployer

CONSTRUCTOR_PARAMS_FILEPATH = CONSTRUCTOR_PARAMS_DIR / "mumbai" / "fantium-721.yml"


@click.command(cls=ConnectedProviderCommand, name="deploy-fantium-721")
@network_option(required=True)
@auto_option
@verify_option
def cli(network, auto, verify):
    """Deploys the non-upgradeable Fantium721V1 and its FantiumMinterV1."""
    deployer = Deployer.from_yaml(
        filepath=CONSTRUCTOR_PARAMS_FILEPATH, verify=verify, autosign=auto
    )

    fantium_721 = deployer.deploy(project.Fantium721V1)

    # constructed with the Fantium721V1 address
    minter = deployer.deploy(project.FantiumMinterV1)

    deployments = [
        fantium_721,
        minter,
    ]

    deployer.finalize(deployments=deployments)


if __name__ == "__main__":
    cli()
