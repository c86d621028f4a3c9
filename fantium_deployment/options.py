from pathlib import Path

import click

from fantium_deployment.constants import ABI_EXPORT_DIR
from fantium_deployment.types import ChecksumAddress

auto_option = click.option(
    "--auto",
    help="Automatically sign transactions.",
    is_flag=True,
)

verify_option = click.option(
    "--verify",
    help="Publish deployed contracts to the block explorer.",
    is_flag=True,
)

record_option = click.option(
    "--record",
    "-r",
    "record_filepath",
    help="Address record written by a previous deployment.",
    type=click.Path(dir_okay=False, exists=True, path_type=Path),
    required=True,
)

proxy_address_option = click.option(
    "--proxy-address",
    "-p",
    help="Proxy to upgrade; defaults to the proxy in the deployment's address record.",
    type=ChecksumAddress(allow_zero=False),
    required=False,
)

contract_name_option = click.option(
    "--contract-name",
    "-c",
    "contract_names",
    help="Contract name; may be repeated.",
    type=click.STRING,
    multiple=True,
    required=False,
)

abi_output_dir_option = click.option(
    "--output-dir",
    "-o",
    help="Directory the ABI files are written to.",
    type=click.Path(file_okay=False, path_type=Path),
    default=ABI_EXPORT_DIR,
    show_default=True,
)

flat_option = click.option(
    "--flat",
    help="Write every ABI directly under the output directory.",
    is_flag=True,
)
