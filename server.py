#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Uvicorn server entry point for the Playlist Stats application.

Handles environment loading (.env), final logging configuration based on environment,
and starts the Uvicorn server process.
"""

import logging
import os
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

from config import config
from logging_config import setup_logging


def load_environment(env_path: Path = Path(".") / ".env") -> bool:
    """Load variables from a .env file, if present, and refresh the configuration.

    Returns:
        bool: True if a .env file was loaded.
    """
    loaded = False
    if env_path.is_file():
        load_dotenv(dotenv_path=env_path, override=True)
        print(f"Loaded environment variables from: {env_path.resolve()}")
        loaded = True
    else:
        print(".env file not found, using system environment variables.")

    # Environment variables override the defaults defined in Config
    config.load_from_env()
    return loaded


def main() -> None:
    """Console entry point: configure the process and run Uvicorn."""
    load_environment()

    # setup_logging reads LOG_LEVEL_CONSOLE, LOG_LEVEL_FILE, LOG_STRUCTURED and LOG_FILE
    setup_logging()

    if not config.API_KEY:
        logging.warning("=" * 80)
        logging.warning(" WARNING: YOUTUBE_API_KEY is not defined.")
        logging.warning(" Please define it in a .env file or as an environment variable.")
        logging.warning(" The application will start, but /api/playlist will answer 503.")
        logging.warning("=" * 80)

    run_host = os.environ.get("HOST", "127.0.0.1")
    try:
        run_port = int(os.environ.get("PORT", "8000"))
    except ValueError:
        logging.warning(f"Invalid PORT environment variable '{os.environ.get('PORT')}', using default 8000.")
        run_port = 8000

    # Throttle state lives in process memory, so several workers throttle independently
    try:
        run_workers = int(os.environ.get("WEB_CONCURRENCY", "1"))
        if run_workers > 1:
            logging.warning(f"Running with {run_workers} workers. Each worker keeps its own throttle state.")
    except ValueError:
        logging.warning(f"Invalid WEB_CONCURRENCY environment variable '{os.environ.get('WEB_CONCURRENCY')}', using default 1.")
        run_workers = 1

    debug_mode = os.environ.get("DEBUG", "false").lower() in ("true", "1", "yes")
    uvicorn_log_level = os.environ.get("UVICORN_LOG_LEVEL", "debug" if debug_mode else "info").lower()

    logging.info(f"Starting Uvicorn server on http://{run_host}:{run_port}")
    logging.info(f"Debug mode: {debug_mode}, Workers: {run_workers}, Uvicorn Log Level: {uvicorn_log_level}")

    uvicorn.run(
        "main:app",
        host=run_host,
        port=run_port,
        reload=debug_mode,
        workers=run_workers if not debug_mode else 1,
        log_level=uvicorn_log_level,
    )


if __name__ == "__main__":
    main()
