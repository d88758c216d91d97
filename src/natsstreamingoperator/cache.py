"""In-memory record of the clusters the controller has reconciled."""

from __future__ import annotations

__all__ = ("ClusterStateCache",)

import threading
from collections import OrderedDict

from natsstreamingoperator.declaration import ClusterDeclaration


class ClusterStateCache:
    """A thread-safe, bounded mapping from cluster uid to the last
    declaration seen for it.

    The cache only answers "has this controller reconciled the cluster
    before?", which decides whether a bootstrap node is created. It is never
    the source of truth for the size of a cluster, and losing it (for example
    on restart) is safe because the pod inventory is always queried again.

    Parameters
    ----------
    max_size : `int`
        Maximum number of clusters tracked. The least recently stored cluster
        is evicted first.
    """

    def __init__(self, max_size: int = 4096) -> None:
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self._max_size = max_size
        self._clusters: OrderedDict[str, ClusterDeclaration] = OrderedDict()
        self._lock = threading.Lock()

    def seen(self, uid: str) -> bool:
        with self._lock:
            return uid in self._clusters

    def get(self, uid: str) -> ClusterDeclaration | None:
        with self._lock:
            return self._clusters.get(uid)

    def put(self, cluster: ClusterDeclaration) -> None:
        """Record ``cluster`` as the latest declaration for its uid."""
        with self._lock:
            self._clusters[cluster.uid] = cluster
            self._clusters.move_to_end(cluster.uid)
            while len(self._clusters) > self._max_size:
                self._clusters.popitem(last=False)

    def remove(self, uid: str) -> ClusterDeclaration | None:
        """Forget a cluster, returning its last declaration if it was known."""
        with self._lock:
            return self._clusters.pop(uid, None)

    def __contains__(self, uid: object) -> bool:
        with self._lock:
            return uid in self._clusters

    def __len__(self) -> int:
        with self._lock:
            return len(self._clusters)
