"""Reconciliation of NatsStreamingCluster declarations with their pods."""

from __future__ import annotations

__all__ = ("Reconciler",)

import threading
from collections.abc import Sequence
from typing import Any

import structlog
from kubernetes.client.exceptions import ApiException

from natsstreamingoperator.cache import ClusterStateCache
from natsstreamingoperator.declaration import ClusterDeclaration, StoreKind
from natsstreamingoperator.events import ClusterEvent, EventType
from natsstreamingoperator.k8s import (
    create_pod,
    delete_pod,
    get_pod,
    list_running_pods,
)
from natsstreamingoperator.pods import build_pod, get_pod_labels, get_pod_name


class Reconciler:
    """Drives the pods of each cluster toward its declared size.

    Parameters
    ----------
    k8s_client
        A Kubernetes client (see `natsstreamingoperator.k8s.create_k8sclient`).
    cache : `natsstreamingoperator.cache.ClusterStateCache`, optional
        The record of clusters reconciled so far. A new, empty cache is used
        if not set.
    logger : optional
        Logger to use for logging messages.

    Notes
    -----
    Notifications are handled one at a time, because kopf runs the timer
    of a cluster concurrently with its other handlers, and the first-sight
    check reads the cache before the pass writes it.
    """

    def __init__(
        self,
        k8s_client: Any,
        cache: ClusterStateCache | None = None,
        logger: Any | None = None,
    ) -> None:
        self.k8s_client = k8s_client
        self.cache = cache if cache is not None else ClusterStateCache()
        self._logger = logger or structlog.get_logger(__name__)
        self._lock = threading.Lock()

    def handle(self, event: ClusterEvent) -> None:
        """Handle one notification about a cluster.

        Raises
        ------
        kubernetes.client.exceptions.ApiException
            Raised if the pod inventory cannot be queried. The pass is
            retried on the next notification.
        """
        cluster = event.cluster
        ref = f"'{cluster.namespace}/{cluster.name}'"
        with self._lock:
            if event.type is EventType.DELETED:
                self._logger.info(f"Deleted cluster {ref}", uid=cluster.uid)
                self.cache.remove(cluster.uid)
                return

            if event.type is EventType.ADDED:
                self._logger.info(f"Adding cluster {ref}", uid=cluster.uid)
            else:
                self._logger.debug(f"Syncing cluster {ref}", uid=cluster.uid)
            self.reconcile(cluster)

    def reconcile(self, cluster: ClusterDeclaration) -> None:
        """Run one reconciliation pass for a cluster.

        The cache entry of the cluster is updated after the pod actions, so
        the pass itself sees whether the cluster was known before it started.
        A cluster marked for deletion is only dropped from the cache; its pods
        are removed by garbage collection through their owner reference.
        """
        if cluster.marked_for_deletion:
            self._logger.debug(f"Removing {cluster.name} cluster")
            self.cache.remove(cluster.uid)
            return

        try:
            self._reconcile_size(cluster)
        finally:
            self.cache.put(cluster)

    def _reconcile_size(self, cluster: ClusterDeclaration) -> None:
        size = cluster.size
        if cluster.store is StoreKind.SQL or size < 1:
            size = 1
            cluster = cluster.with_size(size)

        pods = list_running_pods(
            namespace=cluster.namespace,
            labels=get_pod_labels(cluster.name),
            k8s_client=self.k8s_client,
        )
        ref = f"'{cluster.namespace}/{cluster.name}'"
        delta = len(pods) - size

        if delta == 0:
            self._logger.debug(
                f"Reconciled {ref} cluster (size={size}/{size})"
            )
            return

        if delta > 0:
            self._logger.info(
                f"Too many pods for {ref} cluster "
                f"(size={len(pods)}/{size}), removing {delta} pods..."
            )
            self.shrink(pods, delta)
            return

        missing = -delta
        self._logger.info(
            f"Missing pods for {ref} cluster (size={len(pods)}/{size}), "
            f"creating {missing} pods..."
        )

        # Without Raft clustering there is no group to seed.
        if cluster.store is StoreKind.SQL or cluster.ft_group:
            self.create_missing_pods(cluster, missing)
            return

        # Only the bootstrap node is created the first time a cluster is
        # seen. The followers are created by a later pass, once the cluster
        # is in the cache.
        if not self.cache.seen(cluster.uid):
            self.create_bootstrap_pod(cluster)
            return

        # No node left to join, so a new group has to be formed.
        if missing == size:
            self.create_bootstrap_pod(cluster)
            return

        self.create_missing_pods(cluster, missing)

    def create_bootstrap_pod(self, cluster: ClusterDeclaration) -> bool:
        """Create the first pod of a cluster with the bootstrap flag.

        Returns
        -------
        created : `bool`
            Whether the pod exists after the call.
        """
        body = build_pod(cluster, 1, bootstrap=True)
        self._logger.info(
            f"Creating bootstrap pod "
            f"'{cluster.namespace}/{body['metadata']['name']}'"
        )
        return create_pod(
            body=body,
            namespace=cluster.namespace,
            k8s_client=self.k8s_client,
            logger=self._logger,
        )

    def create_missing_pods(
        self, cluster: ClusterDeclaration, count: int
    ) -> list[str]:
        """Create up to ``count`` pods whose names are not taken.

        Indices are scanned from the size of the cluster down to 1, so pods
        left over by an earlier, partially failed pass are skipped. A pod that
        fails to be created is logged and the rest of the batch proceeds.

        Returns
        -------
        names : `list` of `str`
            The names of the pods created.
        """
        bodies = []
        for index in range(cluster.size, 0, -1):
            if len(bodies) >= count:
                break
            name = get_pod_name(cluster.name, index)
            try:
                existing = get_pod(
                    name=name,
                    namespace=cluster.namespace,
                    k8s_client=self.k8s_client,
                )
            except ApiException as e:
                self._logger.error(
                    f"Failed to look up pod '{cluster.namespace}/{name}'",
                    status=e.status,
                    reason=e.reason,
                )
                continue
            if existing is not None:
                continue
            bodies.append(build_pod(cluster, index))

        created = []
        for body in bodies:
            name = body["metadata"]["name"]
            self._logger.info(f"Creating pod '{cluster.namespace}/{name}'")
            if create_pod(
                body=body,
                namespace=cluster.namespace,
                k8s_client=self.k8s_client,
                logger=self._logger,
            ):
                created.append(name)
        return created

    def shrink(self, pods: Sequence[Any], count: int) -> int:
        """Delete up to ``count`` pods, starting from the end of ``pods``.

        The first pod of the inventory is never deleted, on the assumption
        that it is the original bootstrap node. The API server does not
        guarantee that ordering.

        Returns
        -------
        deleted : `int`
            The number of pods deleted.
        """
        deleted = 0
        for pod in reversed(pods[1:]):
            if deleted == count:
                break
            name = pod.metadata.name
            namespace = pod.metadata.namespace
            self._logger.info(f"Deleting pod '{namespace}/{name}'")
            if delete_pod(
                name=name,
                namespace=namespace,
                k8s_client=self.k8s_client,
                logger=self._logger,
            ):
                deleted += 1
        return deleted
