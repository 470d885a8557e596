"""Agent port allocation for temboard-agent auto-configuration."""

import re
from typing import Callable, Iterable, Optional, Set

from temboardautoconf.constants import PORT_RANGE_END, PORT_RANGE_START
from temboardautoconf.errors import AllocationError
from temboardautoconf.errors_catalog import actionable_error
from temboardautoconf.models import PortAssignment


class PortAllocatorService:
    """Picks the lowest IPv4 TCP port not listening in the agent range.

    Allocation is best effort: the port is not reserved, so another process
    may bind it between the scan and the agent start.
    """

    LOCAL_PORT_PATTERN = re.compile(r":(\d+)\b")

    def __init__(self, logger, start: int = PORT_RANGE_START, end: int = PORT_RANGE_END):
        self.logger = logger
        self.start = start
        self.end = end

    def parse_listening_ports(self, output: str) -> Set[int]:
        used: Set[int] = set()
        for line in output.splitlines():
            fields = line.split()
            # State Recv-Q Send-Q Local:Port Peer:Port
            if len(fields) < 4 or fields[0] == "State":
                continue
            match = self.LOCAL_PORT_PATTERN.search(fields[3])
            if match:
                used.add(int(match.group(1)))
        return used

    def list_used_ports(self, run_cmd: Callable) -> Set[int]:
        port_filter = f"( sport >= {self.start} and sport <= {self.end} )"
        result = run_cmd(["ss", "-ln4t", port_filter], check=True, capture_output=True)
        used = self.parse_listening_ports(result.stdout or "")
        self.logger.debug("Ports in use between %s and %s: %s", self.start, self.end, sorted(used))
        return used

    def first_free_port(self, used: Iterable[int]) -> int:
        used_set = set(used)
        for port in range(self.start, self.end + 1):
            if port not in used_set:
                return port
        raise AllocationError(
            actionable_error("no_free_port", start=str(self.start), end=str(self.end))
        )

    def allocate(self, run_cmd: Callable, override: Optional[int] = None) -> PortAssignment:
        if override is not None:
            self.logger.info("Using forced agent port %s.", override)
            return PortAssignment(port=override, allocated=False)

        port = self.first_free_port(self.list_used_ports(run_cmd))
        self.logger.info("Configuring temboard-agent to run on port %s.", port)
        return PortAssignment(port=port)
