#!/usr/bin/python3

import click
from ape import project
from ape.cli import ConnectedProviderCommand, network_option

from fantium_deployment.constants import CONSTRUCTOR_PARAMS_DIR
from fantium_deployment.options import auto_option, verify_option
from fantium_deployment.params import Deployer

CONSTRUCTOR_PARAMS_FILEPATH = CONSTRUCTOR_PARAMS_DIR / "mumbai" / "user-manager.yml"


@click.command(cls=ConnectedProviderCommand, name="deploy-user-manager")
@network_option(required=True)
@auto_option
@verify_option
def cli(network, auto, verify):
    """Deploys FantiumUserManager behind a UUPS proxy."""
    deployer = Deployer.from_yaml(
        filepath=CONSTRUCTOR_PARAMS_FILEPATH, verify=verify, autosign=auto
    )
    user_manager = deployer.deploy(project.FantiumUserManager)
    deployer.finalize(deployments=[user_manager])


if __name__ == "__main__":
    cli()
