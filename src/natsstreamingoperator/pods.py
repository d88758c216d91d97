"""Utilities for creating the pods of a NATS Streaming cluster."""

from __future__ import annotations

__all__ = (
    "build_container_command",
    "build_container_spec",
    "build_pod",
    "get_pod_labels",
    "get_pod_name",
)

import copy
from typing import Any, cast

import kopf

from natsstreamingoperator import state
from natsstreamingoperator.declaration import ClusterDeclaration, StoreKind


def get_pod_name(cluster_name: str, index: int) -> str:
    """Get the deterministic name of the pod at ``index`` (1-based)."""
    return f"{cluster_name}-{index}"


def get_pod_labels(cluster_name: str) -> dict[str, str]:
    """Get the labels that identify the pods of a cluster.

    The same labels are used as the label selector of the pod inventory.
    """
    return {"app": state.APP_LABEL, state.CLUSTER_LABEL: cluster_name}


def build_pod(
    cluster: ClusterDeclaration,
    index: int,
    *,
    bootstrap: bool = False,
) -> dict[str, Any]:
    """Create the JSON resource for one pod of a NATS Streaming cluster.

    Parameters
    ----------
    cluster : `natsstreamingoperator.declaration.ClusterDeclaration`
        The cluster declaration. Its ``size`` must already be clamped by the
        reconciler.
    index : `int`
        The 1-based index of the pod in the cluster.
    bootstrap : `bool`
        If `True`, the server is started with ``-cluster_bootstrap`` so that
        it forms a new Raft group. The flag is only added for clusters of
        more than one node.

    Returns
    -------
    pod : `dict`
        The Pod resource.

    Notes
    -----
    When the cluster has a pod template, its metadata and spec are the base
    of the pod, and its first container is reused for the server so that
    fields such as volume mounts are preserved. The name, namespace, owner
    reference and the two cluster labels are always overwritten.
    """
    name = get_pod_name(cluster.name, index)

    pod: dict[str, Any] = {
        "apiVersion": "v1",
        "kind": "Pod",
        "metadata": {},
        "spec": {},
    }
    if cluster.template:
        pod["metadata"] = copy.deepcopy(cluster.template.get("metadata") or {})
        pod["spec"] = copy.deepcopy(cluster.template.get("spec") or {})

    metadata = pod["metadata"]
    metadata["name"] = name
    metadata["namespace"] = cluster.namespace
    metadata.pop("generateName", None)
    labels = metadata.get("labels") or {}
    labels.update(get_pod_labels(cluster.name))
    metadata["labels"] = labels

    # Garbage collection of the pods is left to the owner reference.
    metadata["ownerReferences"] = []
    kopf.append_owner_reference(pod, owner=cast("kopf.Body", cluster.body))

    spec = pod["spec"]
    if not spec.get("restartPolicy"):
        spec["restartPolicy"] = state.DEFAULT_RESTART_POLICY

    containers = spec.get("containers") or []
    container = build_container_spec(
        cluster=cluster,
        pod_name=name,
        base=containers[0] if containers else None,
        bootstrap=bootstrap,
    )
    spec["containers"] = [container, *containers[1:]]

    return pod


def build_container_spec(
    *,
    cluster: ClusterDeclaration,
    pod_name: str,
    base: dict[str, Any] | None = None,
    bootstrap: bool = False,
) -> dict[str, Any]:
    """Create the ``stan`` container spec of a pod.

    Parameters
    ----------
    cluster : `natsstreamingoperator.declaration.ClusterDeclaration`
        The cluster declaration.
    pod_name : `str`
        Name of the pod that runs the container.
    base : `dict`, optional
        Container from the pod template. It is copied, never modified.
    bootstrap : `bool`
        Whether this is the bootstrap node.
    """
    container = copy.deepcopy(base) if base else {}
    container["name"] = state.CONTAINER_NAME
    container["image"] = cluster.image or state.default_image
    container["command"] = build_container_command(
        cluster=cluster, pod_name=pod_name, bootstrap=bootstrap
    )
    return container


def build_container_command(
    *,
    cluster: ClusterDeclaration,
    pod_name: str,
    bootstrap: bool = False,
) -> list[str]:
    """Create the command line of the NATS Streaming server.

    The order of the arguments is stable: server connection, store, then
    diagnostics, the config file and finally the bootstrap flag.

    Parameters
    ----------
    cluster : `natsstreamingoperator.declaration.ClusterDeclaration`
        The cluster declaration.
    pod_name : `str`
        Name of the pod, which is also its Raft node id.
    bootstrap : `bool`
        Whether to append ``-cluster_bootstrap``.

    Returns
    -------
    command : `list` of `str`
        The container command.
    """
    command = [
        state.SERVER_BINARY,
        "-cluster_id",
        cluster.name,
        "-nats_server",
        f"{state.NATS_SCHEME}://{cluster.nats_service}:{state.CLIENT_PORT}",
        "-m",
        str(state.MONITORING_PORT),
    ]
    command.extend(_build_store_args(cluster, pod_name))

    config = cluster.config
    if config is not None:
        if config.debug:
            command.append("-SD")
        if config.trace:
            command.append("-SV")
        if config.raft_logging:
            command.append("--cluster_raft_logging")

    if cluster.config_file:
        command.extend(["-sc", cluster.config_file])

    # A single node has no group to bootstrap into.
    if bootstrap and cluster.size > 1:
        command.append("-cluster_bootstrap")

    return command


def _build_store_args(
    cluster: ClusterDeclaration, pod_name: str
) -> list[str]:
    if cluster.store is StoreKind.SQL:
        return ["-store", "SQL"]
    if cluster.store is StoreKind.MEMORY:
        return ["-store", "MEMORY"]

    args = ["-store", "file"]
    if cluster.is_clustered:
        args.extend(["-clustered", f'--cluster_node_id="{pod_name}"'])

    config = cluster.config
    if config is None or not config.store_dir:
        args.extend(["-dir", state.LOCAL_STORE_DIR])
        return args

    if config.ft_group:
        # Both members of an FT pair share the directory of the first pod,
        # which also allows switching a cluster from clustering to FT mode.
        first_pod = get_pod_name(cluster.name, 1)
        args.extend(["-dir", f"{config.store_dir}/{first_pod}"])
        args.append(f"--ft_group={config.ft_group}")
    else:
        args.extend(["-dir", f"{config.store_dir}/{pod_name}"])
        args.extend(
            ["--cluster_log_path", f"{config.store_dir}/raft/{pod_name}"]
        )
    return args
