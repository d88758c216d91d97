"""Kopf handlers for changes to NatsStreamingCluster resources."""

__all__ = (
    "create_cluster",
    "handle_cluster_event",
    "parse_cluster",
    "resync_cluster",
    "update_cluster",
)

from collections.abc import Mapping
from typing import Any

import kopf

from natsstreamingoperator.declaration import (
    ClusterDeclaration,
    InvalidClusterError,
)
from natsstreamingoperator.events import ClusterEvent
from natsstreamingoperator.reconciler import Reconciler


def create_cluster(
    *,
    body: Mapping[str, Any],
    memo: kopf.Memo,
    **kwargs: Any,
) -> None:
    """Handle a NatsStreamingCluster that was created, or that already
    existed when the operator started.

    Parameters
    ----------
    body : `dict`
        The full body of the ``NatsStreamingCluster`` as a read-only dict.
    memo : `kopf.Memo`
        The operator memo, holding the shared ``reconciler``.
    **kwargs : Any
        Additional keyword arguments provided by kopf.
    """
    reconciler: Reconciler = memo.reconciler
    reconciler.handle(ClusterEvent.added(parse_cluster(body)))


def update_cluster(
    *,
    body: Mapping[str, Any],
    memo: kopf.Memo,
    **kwargs: Any,
) -> None:
    """Handle a change to the spec of a NatsStreamingCluster."""
    _sync(body, memo)


def resync_cluster(
    *,
    body: Mapping[str, Any],
    memo: kopf.Memo,
    **kwargs: Any,
) -> None:
    """Reconcile a NatsStreamingCluster periodically.

    This is how followers are created after the bootstrap pod, and how pods
    removed behind the operator's back are replaced.
    """
    _sync(body, memo)


def handle_cluster_event(
    *,
    event: Mapping[str, Any],
    body: Mapping[str, Any],
    memo: kopf.Memo,
    logger: Any,
    **kwargs: Any,
) -> None:
    """Forget a NatsStreamingCluster once it is gone from the API server.

    Parameters
    ----------
    event : `dict`
        The raw watch event. Only ``DELETED`` events are handled.
    body : `dict`
        The last known body of the ``NatsStreamingCluster``.
    memo : `kopf.Memo`
        The operator memo, holding the shared ``reconciler``.
    logger : `Any`
        The kopf logger.
    **kwargs : Any
        Additional keyword arguments provided by kopf.
    """
    if event.get("type") != "DELETED":
        return

    try:
        cluster = ClusterDeclaration.from_resource(body)
    except InvalidClusterError as e:
        logger.warning(f"Ignoring deleted NatsStreamingCluster: {e}")
        return

    reconciler: Reconciler = memo.reconciler
    reconciler.handle(ClusterEvent.deleted(cluster))


def parse_cluster(body: Mapping[str, Any]) -> ClusterDeclaration:
    """Parse the body of a NatsStreamingCluster for a handler.

    Raises
    ------
    kopf.PermanentError
        Raised if the resource is invalid, so that kopf does not retry the
        handler until the resource changes.
    """
    try:
        return ClusterDeclaration.from_resource(body)
    except InvalidClusterError as e:
        raise kopf.PermanentError(str(e)) from e


def _sync(body: Mapping[str, Any], memo: kopf.Memo) -> None:
    reconciler: Reconciler = memo.reconciler
    cluster = parse_cluster(body)
    old = reconciler.cache.get(cluster.uid)
    reconciler.handle(ClusterEvent.updated(old, cluster))
