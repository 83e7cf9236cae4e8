#!/usr/bin/env python3
"""
Run a single supervisor poll and print the classification.

Usage:
    python examples/check_tunnel.py examples/config.yaml
"""

import sys

from tunnel_keeper import load_config, TunnelSupervisor, WireGuardHost
from tunnel_keeper.log import setup_logging
from tunnel_keeper.provision import build_provisioner


def main():
    config = load_config(sys.argv[1] if len(sys.argv) > 1 else "examples/config.yaml")
    setup_logging(verbose=True)

    tunnel = config.tunnel
    host = WireGuardHost(
        use_sudo=tunnel.use_sudo,
        probe_count=tunnel.probe_count,
        probe_timeout=tunnel.probe_timeout,
    )
    supervisor = TunnelSupervisor(config, host, build_provisioner(config))

    # Starting from zero, one poll only recovers if poll_interval >= max_down_time
    result = supervisor.check_once(down_time=0)
    print(f"{tunnel.interface}: {result.health.value} (down {result.down_time}s)")


if __name__ == "__main__":
    main()
