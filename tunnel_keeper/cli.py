"""Command-line interface for tunnel-keeper."""

from __future__ import annotations

import signal
import sys
import threading
from dataclasses import dataclass
from typing import Annotated, Optional, Sequence, Union

import tyro
import yaml
from pydantic import ValidationError

from tunnel_keeper.config import Config, load_config, load_config_or_default
from tunnel_keeper.log import get_logger, setup_logging

logger = get_logger("cli")

EXIT_CONFIG_ERROR = 1

DESCRIPTION = """Keep a WireGuard VPN tunnel alive.

Examples:
  # Regenerate credentials and publish the gateway profile once
  tunnel-keeper provision --config config.yaml

  # Supervise the tunnel forever
  tunnel-keeper supervise --config config.yaml
"""


@dataclass
class ProvisionArgs:
    """Regenerate credentials and write the profile artifacts once."""
    config: Optional[str] = None
    """Path to config file (default: $TUNNEL_KEEPER_CONFIG or ./config.yaml)"""
    verbose: bool = False
    """Enable debug logging"""


@dataclass
class SuperviseArgs:
    """Monitor the tunnel and recover it when it stays down."""
    config: Optional[str] = None
    """Path to config file (default: $TUNNEL_KEEPER_CONFIG or ./config.yaml)"""
    interface: Optional[str] = None
    """Override the interface named in the config"""
    max_cycles: Optional[int] = None
    """Stop after this many polls (default: run forever)"""
    verbose: bool = False
    """Enable debug logging"""


Command = Union[
    Annotated[ProvisionArgs, tyro.conf.subcommand("provision")],
    Annotated[SuperviseArgs, tyro.conf.subcommand("supervise")],
]


def _load(path: Optional[str], verbose: bool) -> Optional[Config]:
    """Load config and set up logging; None if the config is unusable."""
    try:
        config = load_config(path) if path else load_config_or_default()
    except (FileNotFoundError, ValueError, yaml.YAMLError, ValidationError) as e:
        setup_logging(verbose=verbose)
        logger.error(f"[CONFIG] {e}")
        return None

    setup_logging(level=config.logging.level, log_file=config.logging.file, verbose=verbose)
    return config


def cmd_provision(args: ProvisionArgs) -> int:
    """Execute provision command."""
    config = _load(args.config, args.verbose)
    if config is None:
        return EXIT_CONFIG_ERROR

    from tunnel_keeper.provision import ProvisionError, ToolProvisioner

    try:
        ToolProvisioner(config).provision()
    except ProvisionError as e:
        logger.error(f"[PROVISION] {e.step} failed: {e}")
        return e.exit_code

    logger.info("[PROVISION] Setup complete; activate the profile on the gateway if it is new")
    return 0


def cmd_supervise(args: SuperviseArgs) -> int:
    """Execute supervise command."""
    config = _load(args.config, args.verbose)
    if config is None:
        return EXIT_CONFIG_ERROR
    if args.interface:
        config = config.with_interface(args.interface)

    from tunnel_keeper.provision import build_provisioner
    from tunnel_keeper.supervisor import TunnelSupervisor
    from tunnel_keeper.tunnel import WireGuardHost
    from tunnel_keeper.tunnel.wireguard import command_available

    if not command_available("wg"):
        logger.error("[SUPERVISE] `wg` not found in PATH; every poll will report the tunnel stale")

    tunnel = config.tunnel
    host = WireGuardHost(
        use_sudo=tunnel.use_sudo,
        probe_count=tunnel.probe_count,
        probe_timeout=tunnel.probe_timeout,
        strip_quick=tunnel.strip_quick_keys,
    )
    supervisor = TunnelSupervisor(config, host, build_provisioner(config))

    stop_event = threading.Event()

    def _stop(signum, frame):
        logger.info(f"[SUPERVISE] Received signal {signum}, stopping after this cycle")
        stop_event.set()

    signal.signal(signal.SIGTERM, _stop)
    signal.signal(signal.SIGINT, _stop)

    supervisor.run(stop_event, max_cycles=args.max_cycles)
    return 0


def dispatch(args: Union[ProvisionArgs, SuperviseArgs]) -> int:
    if isinstance(args, ProvisionArgs):
        return cmd_provision(args)
    return cmd_supervise(args)


def main(argv: Optional[Sequence[str]] = None):
    """Main entry point for tunnel-keeper CLI."""
    args = tyro.cli(Command, args=argv, description=DESCRIPTION)
    sys.exit(dispatch(args))


def provision_main(argv: Optional[Sequence[str]] = None):
    """Entry point for tunnel-keeper-provision."""
    sys.exit(cmd_provision(tyro.cli(ProvisionArgs, args=argv)))


def supervise_main(argv: Optional[Sequence[str]] = None):
    """Entry point for tunnel-keeper-supervise."""
    sys.exit(cmd_supervise(tyro.cli(SuperviseArgs, args=argv)))


if __name__ == "__main__":
    main()
