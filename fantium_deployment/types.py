import click
from ape.utils import ZERO_ADDRESS
from eth_utils import is_address, to_checksum_address


class ChecksumAddress(click.ParamType):
    """An ethereum address option, normalized to its checksummed form."""

    name = "checksum_address"

    def __init__(self, allow_zero: bool = True):
        self.allow_zero = allow_zero

    def convert(self, value, param, ctx):
        if not is_address(value):
            self.fail(f"{value} is not a valid ethereum address", param, ctx)
        address = to_checksum_address(value)
        if not self.allow_zero and address == ZERO_ADDRESS:
            self.fail("The zero address cannot be used here", param, ctx)
        return address
