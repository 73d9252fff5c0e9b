# structseg/cli/main.py

"""
Main entry point for the structseg CLI application.
Uses Click for command-line interface handling.
"""

import logging

import click

from structseg.version import __version__
from .base_cmd import ConfigGroup, verbose_option, quiet_option
from .segment_cmd import segment_cmd

logger = logging.getLogger(__name__)

CONTEXT_SETTINGS = dict(help_option_names=['-h', '--help'])


@click.group(context_settings=CONTEXT_SETTINGS, cls=ConfigGroup)
@click.version_option(__version__, '-V', '--version', package_name='structseg', prog_name='structseg')
@verbose_option
@quiet_option
@click.pass_context
def main_cli(ctx, verbose: int, quiet: bool):
    """
    structseg: structural segmentation of audio into labeled regions.

    Configuration is loaded from:
    Defaults -> ./structseg.toml -> ~/.config/structseg/structseg.toml -> Env Vars

    Use -v for verbose output, -vv for debug output, -q for quiet mode.
    """
    logger.debug("structseg CLI group invoked.")


main_cli.add_command(segment_cmd)

cli = main_cli

if __name__ == "__main__":
    cli()
