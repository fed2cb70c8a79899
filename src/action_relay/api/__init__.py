"""HTTP surface of the webhook action relay."""

from action_relay.api.app import cli, load_config, load_config_from_file, setup_app
from action_relay.api.server import create_app, create_forwarder, run_server

__all__ = [
    "load_config",
    "load_config_from_file",
    "setup_app",
    "cli",
    "create_app",
    "create_forwarder",
    "run_server",
]
