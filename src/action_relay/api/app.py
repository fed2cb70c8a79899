import sys
from pathlib import Path
from typing import Optional

import click
import yaml
from loguru import logger

from action_relay.api.server import run_server
from action_relay.common.config import RelayConfig
from action_relay.common.log import configure_logging


def load_config_from_file(config_path: str) -> RelayConfig:
    """Load configuration from a YAML file."""
    file_path = Path(config_path)
    if not file_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(file_path, "r") as f:
        config_data = yaml.safe_load(f) or {}

    return RelayConfig.model_validate(config_data)


def load_config(config_path: Optional[str] = None) -> RelayConfig:
    """Load configuration from ``config_path`` or, without one, the environment."""
    if config_path:
        return load_config_from_file(config_path)
    return RelayConfig()


def setup_app(config: RelayConfig) -> RelayConfig:
    configure_logging(config.log_level)
    logger.info("Webhook Action Relay initialized")
    return config


@click.group()
def cli():
    """Webhook Action Relay CLI"""
    pass


@cli.command("serve")
@click.option(
    "--config",
    "-c",
    required=False,
    help="Path to configuration file (defaults to environment variables)",
)
def serve(config: Optional[str]):
    """Start the relay server."""
    try:
        config_obj = setup_app(load_config(config))
        run_server(config_obj)
    except Exception as e:
        logger.error(f"Failed to start relay: {e}")
        sys.exit(1)


if __name__ == "__main__":
    cli()
