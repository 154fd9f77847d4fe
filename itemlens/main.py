"""Main entry point for ItemLens."""

import argparse
import logging
import sys
import tkinter as tk

from .config.settings import load_config
from .core.constants import APP_NAME, VERSION
from .core.logging_config import configure_logging
from .utils.geometry import ensure_dirs

logger = logging.getLogger(__name__)


def setup_directories(config):
    """Ensure required directories exist."""
    ensure_dirs(config.results_export_dir, config.log_dir)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(prog="itemlens", description=f"{APP_NAME} batch item measurement")
    parser.add_argument("--config", default="config.json", help="Path to the JSON configuration file")
    parser.add_argument("--env-file", default=None, help="Optional .env file with GEMINI_* overrides")
    parser.add_argument("--version", action="version", version=f"{APP_NAME} {VERSION}")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    """Application entry point."""
    args = parse_args(argv)
    config = load_config(args.config, env_file=args.env_file)

    configure_logging(
        log_level="DEBUG" if config.debug else config.log_level,
        log_dir=config.log_dir,
        structured_logging=config.structured_logging,
    )
    setup_directories(config)

    # Imported late so --help and --version work without a display
    from .ui.main_window import MainWindow

    try:
        root = tk.Tk()
        MainWindow(root, config, config_path=args.config)
        logger.info(f"Starting {APP_NAME} {VERSION}")
        root.mainloop()
    except tk.TclError as e:
        logger.error(f"Failed to start application: {e}", exc_info=True)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
