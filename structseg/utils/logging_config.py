# structseg/utils/logging_config.py

"""
Configures the logging system for structseg based on loaded settings.
Uses Rich for enhanced console logging.
"""

import logging
from datetime import datetime
from typing import Optional
from pathlib import Path

from rich.logging import RichHandler

from structseg.config import StructsegConfig
from structseg.version import __version__

# --- Constants ---
# Map verbosity levels (from CLI flags) to logging levels
VERBOSITY_MAP = {
    1: logging.INFO,     # -v (verbose)
    2: logging.DEBUG,    # -vv (debug)
    -1: logging.CRITICAL + 10 # -q (quiet/silent)
}

# --- Setup Function ---

def setup_logging(config: StructsegConfig, verbosity: int = 0) -> Optional[Path]:
    """
    Configures the package logger based on the provided configuration and verbosity level.

    Args:
        config: The loaded StructsegConfig object.
        verbosity: Console verbosity (0 normal, 1 verbose, 2 debug, -1 quiet).
                   Normal verbosity uses `logging.log_level_console`.

    Returns:
        Path of the log file if file logging is enabled, otherwise None.
    """
    log_cfg = config.logging
    if verbosity == 0:
        console_level = logging.getLevelName(log_cfg.log_level_console)
    else:
        console_level = VERBOSITY_MAP.get(verbosity, logging.DEBUG)

    root_logger = logging.getLogger("structseg")
    root_logger.setLevel(logging.DEBUG) # Handlers filter by their own level
    root_logger.handlers.clear()

    # --- Console Handler (Rich) ---
    if console_level <= logging.CRITICAL:
        console_handler = RichHandler(
            level=console_level,
            show_time=False,
            show_level=True,
            show_path=False,
            rich_tracebacks=True,
            markup=False, # Log messages contain brackets from array reprs
        )
        console_handler.setFormatter(logging.Formatter("%(message)s"))
        root_logger.addHandler(console_handler)

    # --- File Handler ---
    log_filepath: Optional[Path] = None
    if log_cfg.log_file_enabled:
        try:
            log_dir = config.paths.log_directory
            log_dir.mkdir(parents=True, exist_ok=True)
            log_filepath = log_dir / log_cfg.log_filename_template.format(timestamp=datetime.now())

            file_handler = logging.FileHandler(log_filepath, encoding='utf-8')
            file_handler.setLevel(log_cfg.log_level_file)
            file_handler.setFormatter(logging.Formatter(log_cfg.log_format))
            root_logger.addHandler(file_handler)
        except OSError as e:
            logging.getLogger("structseg.error").error(f"Failed to configure file logging: {e}", exc_info=True)
            log_filepath = None

    init_logger = logging.getLogger("structseg.init")
    init_logger.info(f"structseg v{__version__} initialized.")
    init_logger.debug(f"Console logging level set to: {logging.getLevelName(console_level)}")
    if log_filepath is not None:
        init_logger.info(f"Logging to file: {log_filepath}")
        init_logger.debug(f"Full configuration loaded: {config.model_dump()}")
    return log_filepath
