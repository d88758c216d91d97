"""Kopf handlers for the nats-streaming-operator."""

__all__ = (
    "build_registry",
    "create_cluster",
    "handle_cluster_event",
    "login",
    "resync_cluster",
    "update_cluster",
)

import kopf

from natsstreamingoperator import state
from natsstreamingoperator.handlers.clusters import (
    create_cluster,
    handle_cluster_event,
    resync_cluster,
    update_cluster,
)
from natsstreamingoperator.handlers.login import login


def build_registry(resync_period: int) -> kopf.OperatorRegistry:
    """Register the operator's handlers in a new kopf registry.

    Parameters
    ----------
    resync_period : `int`
        Seconds between two periodic reconciliations of a cluster. The first
        one happens one period after the cluster is first handled, so the
        bootstrap pod is created alone.
    """
    registry = kopf.OperatorRegistry()
    resource = (state.CRD_GROUP, state.CRD_VERSION, state.CRD_PLURAL)

    kopf.on.login(registry=registry)(login)
    kopf.on.create(*resource, registry=registry)(create_cluster)
    kopf.on.resume(*resource, registry=registry)(create_cluster)
    kopf.on.update(*resource, registry=registry)(update_cluster)
    kopf.timer(
        *resource,
        interval=resync_period,
        initial_delay=resync_period,
        registry=registry,
    )(resync_cluster)
    kopf.on.event(*resource, registry=registry)(handle_cluster_event)
    return registry
