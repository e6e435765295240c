"""System collector: listening sockets from the Linux ``/proc`` filesystem."""

from __future__ import annotations

import asyncio
import ipaddress
import logging
from dataclasses import dataclass
from pathlib import Path

from portracker.collectors.base import BaseCollector, PortObservation

logger = logging.getLogger(__name__)

TCP_LISTEN = "0A"
UDP_UNCONNECTED = "07"

# (file name, protocol, is IPv6)
PROC_NET_TABLES = (
    ("tcp", "tcp", False),
    ("tcp6", "tcp", True),
    ("udp", "udp", False),
    ("udp6", "udp", True),
)


@dataclass(frozen=True)
class SocketEntry:
    """A listening socket parsed from a /proc/net table."""

    host_ip: str
    host_port: int
    protocol: str
    inode: int


def decode_address(encoded: str, ipv6: bool = False) -> tuple[str, int]:
    """Decode ``ADDR:PORT`` as written by the kernel in /proc/net tables.

    Addresses are hex in host byte order, stored per 32-bit word; the port is
    plain big-endian hex.
    """
    address_hex, port_hex = encoded.split(":")
    raw = bytes.fromhex(address_hex)
    # Each 32-bit word is little-endian on the architectures we run on
    words = b"".join(raw[i : i + 4][::-1] for i in range(0, len(raw), 4))
    if ipv6:
        address = str(ipaddress.IPv6Address(words))
    else:
        address = str(ipaddress.IPv4Address(words))
    return address, int(port_hex, 16)


def parse_proc_net(text: str, protocol: str, ipv6: bool = False) -> list[SocketEntry]:
    """Parse the contents of /proc/net/{tcp,tcp6,udp,udp6}.

    Only listening TCP sockets and unconnected UDP sockets are returned.
    """
    wanted_state = TCP_LISTEN if protocol == "tcp" else UDP_UNCONNECTED
    entries: list[SocketEntry] = []

    for line in text.splitlines()[1:]:
        fields = line.split()
        if len(fields) < 10:
            continue
        if fields[3].upper() != wanted_state:
            continue
        try:
            host_ip, host_port = decode_address(fields[1], ipv6=ipv6)
            inode = int(fields[9])
        except ValueError:
            logger.debug("Skipping malformed /proc/net line: %s", line.strip())
            continue
        if host_port == 0:
            continue
        entries.append(SocketEntry(host_ip, host_port, protocol, inode))
    return entries


class SystemCollector(BaseCollector):
    """Lists the host's listening sockets and the processes that own them.

    Process lookup walks ``/proc/<pid>/fd``; sockets owned by processes we may
    not inspect are reported with the owner ``unknown``.
    """

    platform = "system"

    def __init__(self, debug: bool = False, proc_root: str | Path = "/proc") -> None:
        super().__init__(debug=debug)
        self.proc_root = Path(proc_root)

    async def get_ports(self) -> list[PortObservation]:
        return await asyncio.to_thread(self._collect)

    def _read_sockets(self) -> list[SocketEntry]:
        sockets: list[SocketEntry] = []
        for file_name, protocol, ipv6 in PROC_NET_TABLES:
            path = self.proc_root / "net" / file_name
            try:
                text = path.read_text()
            except OSError as e:
                logger.debug("Cannot read %s: %s", path, e)
                continue
            sockets.extend(parse_proc_net(text, protocol, ipv6=ipv6))
        return sockets

    def _socket_owners(self) -> dict[int, tuple[int, str]]:
        """Map socket inode to (pid, process name)."""
        owners: dict[int, tuple[int, str]] = {}
        try:
            pid_dirs = [p for p in self.proc_root.iterdir() if p.name.isdigit()]
        except OSError as e:
            logger.warning("Cannot list %s: %s", self.proc_root, e)
            return owners

        for pid_dir in pid_dirs:
            try:
                fds = list((pid_dir / "fd").iterdir())
            except OSError:
                continue
            name: str | None = None
            for fd in fds:
                try:
                    link = str(fd.readlink())
                except OSError:
                    continue
                if not link.startswith("socket:["):
                    continue
                if name is None:
                    name = self._process_name(pid_dir)
                owners.setdefault(int(link[8:-1]), (int(pid_dir.name), name))
        return owners

    @staticmethod
    def _process_name(pid_dir: Path) -> str:
        try:
            return (pid_dir / "comm").read_text().strip() or "unknown"
        except OSError:
            return "unknown"

    def _collect(self) -> list[PortObservation]:
        sockets = self._read_sockets()
        owners = self._socket_owners() if sockets else {}

        observations = []
        for entry in sockets:
            pid, owner = owners.get(entry.inode, (None, "unknown"))
            observations.append(
                PortObservation(
                    host_ip=entry.host_ip,
                    host_port=entry.host_port,
                    protocol=entry.protocol,
                    owner=owner,
                    pid=pid,
                    source="system",
                )
            )
        if self.debug:
            logger.debug("System collector found %d listening sockets", len(observations))
        return observations
