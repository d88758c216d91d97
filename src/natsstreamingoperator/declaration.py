"""The NatsStreamingCluster declaration, parsed from the custom resource."""

from __future__ import annotations

__all__ = (
    "ClusterDeclaration",
    "ClusteringConfig",
    "InvalidClusterError",
    "StoreKind",
)

import dataclasses
import enum
from collections.abc import Mapping
from typing import Any


class InvalidClusterError(ValueError):
    """Raised when a NatsStreamingCluster resource cannot be interpreted."""


class StoreKind(enum.Enum):
    """Storage backends supported by the streaming server."""

    FILE = "file"
    MEMORY = "memory"
    SQL = "sql"

    @classmethod
    def parse(cls, value: str | None) -> StoreKind:
        """Parse the ``spec.store`` field.

        Matching is case-insensitive. A missing or unrecognized store is the
        file store, which is the server's own default.
        """
        if not value:
            return cls.FILE
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.FILE


@dataclasses.dataclass(frozen=True)
class ClusteringConfig:
    """The optional ``spec.config`` block of a NatsStreamingCluster."""

    debug: bool = False
    trace: bool = False
    raft_logging: bool = False
    raft_log_path: str = ""
    store_dir: str = ""
    ft_group: str = ""
    force_clustered: bool = False

    @classmethod
    def from_spec(cls, config: Mapping[str, Any]) -> ClusteringConfig:
        return cls(
            debug=bool(config.get("debug", False)),
            trace=bool(config.get("trace", False)),
            raft_logging=bool(config.get("raftLogging", False)),
            raft_log_path=config.get("raftLogPath") or "",
            store_dir=config.get("storeDir") or "",
            ft_group=config.get("ftGroup") or "",
            force_clustered=bool(config.get("clustered", False)),
        )


@dataclasses.dataclass(frozen=True)
class ClusterDeclaration:
    """The desired state of one NATS Streaming cluster.

    Parameters
    ----------
    uid : `str`
        The ``metadata.uid`` of the resource. Stable for the lifetime of the
        object.
    name : `str`
        The name of the resource, also used as the streaming cluster id.
    namespace : `str`
        The namespace of the resource and of its pods.
    size : `int`
        The requested number of pods.
    image : `str`
        Image override. Empty means the operator's default image.
    nats_service : `str`
        Address of the NATS service that the servers connect to.
    store : `StoreKind`
        The storage backend.
    config : `ClusteringConfig` or `None`
        Clustering, fault tolerance and diagnostics settings.
    config_file : `str`
        Path of a server configuration file mounted into the pod.
    template : `dict` or `None`
        Pod template whose metadata and spec are the base of every pod.
    marked_for_deletion : `bool`
        `True` once the resource has a deletion timestamp.
    body : `dict`
        The raw resource, used to build owner references.
    """

    uid: str
    name: str
    namespace: str
    size: int = 0
    image: str = ""
    nats_service: str = ""
    store: StoreKind = StoreKind.FILE
    config: ClusteringConfig | None = None
    config_file: str = ""
    template: dict[str, Any] | None = None
    marked_for_deletion: bool = False
    body: dict[str, Any] = dataclasses.field(
        default_factory=dict, compare=False, repr=False
    )

    @classmethod
    def from_resource(cls, body: Mapping[str, Any]) -> ClusterDeclaration:
        """Build a declaration from a NatsStreamingCluster resource body.

        Raises
        ------
        InvalidClusterError
            Raised if the metadata is incomplete or ``spec.size`` is not an
            integer.
        """
        meta = body.get("metadata") or {}
        spec = body.get("spec") or {}
        try:
            uid = meta["uid"]
            name = meta["name"]
        except KeyError as err:
            raise InvalidClusterError(
                f"NatsStreamingCluster is missing metadata.{err.args[0]}"
            ) from err

        raw_size = spec.get("size", 0)
        if isinstance(raw_size, bool):
            raise InvalidClusterError(f"{name}: size must be an integer")
        try:
            size = int(raw_size or 0)
        except (TypeError, ValueError) as err:
            raise InvalidClusterError(
                f"{name}: size must be an integer, got {raw_size!r}"
            ) from err

        raw_config = spec.get("config")
        config = (
            ClusteringConfig.from_spec(raw_config)
            if isinstance(raw_config, Mapping)
            else None
        )

        return cls(
            uid=uid,
            name=name,
            namespace=meta.get("namespace") or "",
            size=size,
            image=spec.get("image") or "",
            nats_service=spec.get("natsSvc") or "",
            store=StoreKind.parse(spec.get("store")),
            config=config,
            config_file=spec.get("configFile") or "",
            template=spec.get("template") or None,
            marked_for_deletion=meta.get("deletionTimestamp") is not None,
            body=dict(body),
        )

    @property
    def ft_group(self) -> str:
        """The fault tolerance group, or an empty string."""
        return self.config.ft_group if self.config is not None else ""

    @property
    def is_clustered(self) -> bool:
        """Whether the pods run in Raft clustering mode.

        Fault tolerance mode and the non-file stores never cluster.
        """
        if self.store is not StoreKind.FILE or self.ft_group:
            return False
        forced = self.config is not None and self.config.force_clustered
        return self.size > 1 or forced

    def with_size(self, size: int) -> ClusterDeclaration:
        """Return a copy of the declaration with a different size."""
        return dataclasses.replace(self, size=size)
