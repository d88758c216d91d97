"""Typed notifications about NatsStreamingCluster resources."""

from __future__ import annotations

__all__ = ("ClusterEvent", "EventType")

import dataclasses
import enum

from natsstreamingoperator.declaration import ClusterDeclaration


class EventType(enum.Enum):
    ADDED = "ADDED"
    UPDATED = "UPDATED"
    DELETED = "DELETED"


@dataclasses.dataclass(frozen=True)
class ClusterEvent:
    """A change to a NatsStreamingCluster.

    ``cluster`` is the latest state of the resource, and for deletions its
    final state. ``old`` is only set for updates, and is the state the
    controller had recorded before.
    """

    type: EventType
    cluster: ClusterDeclaration
    old: ClusterDeclaration | None = None

    @classmethod
    def added(cls, cluster: ClusterDeclaration) -> ClusterEvent:
        return cls(EventType.ADDED, cluster)

    @classmethod
    def updated(
        cls, old: ClusterDeclaration | None, new: ClusterDeclaration
    ) -> ClusterEvent:
        return cls(EventType.UPDATED, new, old)

    @classmethod
    def deleted(cls, cluster: ClusterDeclaration) -> ClusterEvent:
        return cls(EventType.DELETED, cluster)
