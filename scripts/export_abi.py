#!/usr/bin/python3

import click
from ape import project

from fantium_deployment.options import abi_output_dir_option, contract_name_option, flat_option
from fantium_deployment.utils import export_abi, get_contract_container


@click.command(name="export-abi")
@contract_name_option
@abi_output_dir_option
@flat_option
def cli(contract_names, output_dir, flat):
    """Export contract ABIs as JSON. Exports every project contract by default."""
    contract_names = contract_names or sorted(project.contracts)
    for contract_name in contract_names:
        container = get_contract_container(contract_name)
        filepath = export_abi(container, output_dir=output_dir, flat=flat)
        click.secho(f"{contract_name} -> {filepath}", fg="cyan")


if __name__ == "__main__":
    cli()
