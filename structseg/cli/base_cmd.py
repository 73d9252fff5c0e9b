# structseg/cli/base_cmd.py

"""
Base setup for CLI commands: configuration loading and logging initialization.
"""

import logging
import sys

import click

from structseg.config import load_configuration, StructsegConfig
from structseg.utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


class ConfigGroup(click.Group):
    """
    A custom Click Group that loads configuration and sets up logging before
    invoking the group or its subcommands. Passes the config via ctx.obj.
    Handles exceptions during setup gracefully.
    """
    def invoke(self, ctx: click.Context):
        if ctx.obj is None:
            ctx.obj = {}

        setup_success = False
        try:
            # --- Setup Phase ---
            if 'config' not in ctx.obj:
                config = load_configuration()
                ctx.obj['config'] = config

                verbosity = 0
                if ctx.params.get('quiet', False):
                    verbosity = -1
                elif ctx.params.get('verbose', 0) > 0:
                    verbosity = ctx.params['verbose']
                setup_logging(config, verbosity)
                logger.debug("Logging setup complete in ConfigGroup.")
            else:
                config: StructsegConfig = ctx.obj['config']
                logger.debug("Configuration already loaded in context.")

            setup_success = True

            # --- Command Execution Phase ---
            return super().invoke(ctx)

        except click.exceptions.Exit:
            raise
        except Exception as e:
            if not setup_success:
                logging.getLogger("structseg.error").critical(f"Critical error during CLI setup: {repr(e)}", exc_info=True)
                print(f"CRITICAL SETUP ERROR: {repr(e)}", file=sys.stderr)
                ctx.exit(1)
            raise


# --- Common CLI Options ---
verbose_option = click.option(
    '-v', '--verbose',
    count=True,
    help="Increase verbosity level (-v for INFO, -vv for DEBUG)."
)
quiet_option = click.option(
    '-q', '--quiet',
    is_flag=True,
    default=False,
    help="Suppress all console output except critical errors."
)
