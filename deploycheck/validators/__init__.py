from __future__ import annotations

from ..suite import Suite
from . import api_contract, command_surface, container_config, live_topology

COMMANDS = Suite(key="commands", title="Makefile Commands", build=command_surface.build_checks)
DOCKER = Suite(key="docker", title="Docker Configuration", build=container_config.build_checks)
API = Suite(key="api", title="API Integration", build=api_contract.build_checks, live=True)
LIVE = Suite(key="live", title="DevOps Integration", build=live_topology.build_checks, live=True)

# Fixed execution order.
SUITES: tuple[Suite, ...] = (COMMANDS, DOCKER, API, LIVE)
SUITES_BY_KEY: dict[str, Suite] = {s.key: s for s in SUITES}
