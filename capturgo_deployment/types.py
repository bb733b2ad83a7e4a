import click
from eth_utils import to_checksum_address


class ChecksumAddress(click.ParamType):
    name = "checksum_address"

    def convert(self, value, param, ctx):
        try:
            return to_checksum_address(value)
        except ValueError:
            self.fail(f"{value} is not a valid contract address", param, ctx)
