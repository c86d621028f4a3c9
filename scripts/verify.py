import click
from ape.cli import ConnectedProviderCommand, network_option

from fantium_deployment.networks import get_network_config
from fantium_deployment.options import contract_name_option, record_option
from fantium_deployment.records import IMPLEMENTATION_KEY, PROXY_KEY, read_address_record
from fantium_deployment.utils import check_plugins, get_contract_container, verify_contracts


@click.command(cls=ConnectedProviderCommand)
@network_option(required=True)
@record_option
@contract_name_option
def cli(network, record_filepath, contract_names):
    """Verify the contracts of an address record."""
    check_plugins(get_network_config())
    record = read_address_record(record_filepath)

    contract_instances = []
    if PROXY_KEY in record:
        if len(contract_names) != 1:
            raise click.BadOptionUsage(
                option_name="--contract-name",
                message="Provide exactly one contract name for a proxy address record.",
            )
        # the proxy itself is an OpenZeppelin contract; verify the implementation
        implementation = record[IMPLEMENTATION_KEY]
        print(f"Proxy record detected; verifying implementation contract at {implementation}")
        contract_container = get_contract_container(contract_names[0])
        contract_instances.append(contract_container.at(implementation))
    else:
        for contract_name in contract_names or list(record):
            try:
                address = record[contract_name]
            except KeyError:
                raise ValueError(
                    f"Contract '{contract_name}' not found in address record '{record_filepath}'"
                )
            contract_container = get_contract_container(contract_name)
            contract_instances.append(contract_container.at(address))

    verify_contracts(contract_instances)


if __name__ == "__main__":
    cli()
