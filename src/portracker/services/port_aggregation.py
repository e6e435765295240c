"""Merge raw collector output into one entry per listening address."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from portracker.collectors.base import PortObservation


@dataclass
class AggregatedPort:
    """A listening address with every owner and pid seen on it.

    The grouping key is ``host_ip:host_port:protocol``, which is narrower than
    the annotation identity: two containers publishing the same host port
    collapse into one entry here while keeping separate annotation rows. The
    first observation of a group supplies container_id, internal, source and
    target.
    """

    observation: PortObservation
    owners: list[str] = field(default_factory=list)
    pids: list[int] = field(default_factory=list)

    @property
    def owner(self) -> str:
        return ", ".join(self.owners)

    @property
    def key(self) -> str:
        return aggregation_key(self.observation)

    def to_dict(self) -> dict[str, Any]:
        payload = self.observation.to_dict()
        payload["owner"] = self.owner
        payload["owners"] = list(self.owners)
        payload["pids"] = list(self.pids)
        return payload


def aggregation_key(observation: PortObservation) -> str:
    return f"{observation.host_ip}:{observation.host_port}:{observation.protocol}"


def aggregate_ports(observations: Iterable[PortObservation]) -> list[AggregatedPort]:
    """Deduplicate observations by address, keeping first-seen order."""
    groups: dict[str, AggregatedPort] = {}
    for observation in observations:
        if not observation.host_port or not observation.host_ip:
            continue

        key = aggregation_key(observation)
        entry = groups.get(key)
        if entry is None:
            entry = AggregatedPort(observation=observation)
            groups[key] = entry

        if observation.owner not in entry.owners:
            entry.owners.append(observation.owner)
        if observation.pid and observation.pid not in entry.pids:
            entry.pids.append(observation.pid)

    return list(groups.values())
