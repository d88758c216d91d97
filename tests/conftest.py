"""Shared fixtures and in-memory Kubernetes API fakes."""

from __future__ import annotations

import copy
import time
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

import pytest
import yaml
from kubernetes import client
from kubernetes.client.exceptions import ApiException

from natsstreamingoperator.declaration import ClusterDeclaration


def make_cluster(manifest: str) -> ClusterDeclaration:
    """Parse a NatsStreamingCluster YAML manifest into a declaration."""
    return ClusterDeclaration.from_resource(yaml.safe_load(manifest))


def get_command(pod: dict[str, Any]) -> list[str]:
    return pod["spec"]["containers"][0]["command"]


class FakeCoreV1Api:
    """Stores pods in memory, in creation order."""

    def __init__(self) -> None:
        self.pods: dict[tuple[str, str], dict[str, Any]] = {}
        self.terminating: set[tuple[str, str]] = set()
        self.fail_create: set[str] = set()
        self.fail_delete: set[str] = set()
        self.fail_list = False
        self.created: list[str] = []
        self.deleted: list[str] = []

    def add_pod(
        self,
        name: str,
        namespace: str = "default",
        labels: dict[str, str] | None = None,
        *,
        terminating: bool = False,
    ) -> None:
        self.pods[(namespace, name)] = {
            "metadata": {
                "name": name,
                "namespace": namespace,
                "labels": dict(labels or {}),
            },
            "spec": {},
        }
        if terminating:
            self.terminating.add((namespace, name))

    def pod_names(self, namespace: str = "default") -> list[str]:
        return [name for (ns, name) in list(self.pods) if ns == namespace]

    def get_body(self, name: str, namespace: str = "default") -> dict[str, Any]:
        return self.pods[(namespace, name)]

    def list_namespaced_pod(
        self, namespace: str, label_selector: str = "", **kwargs: Any
    ) -> client.V1PodList:
        if self.fail_list:
            raise ApiException(status=500, reason="Internal Server Error")
        wanted = dict(
            part.split("=", 1) for part in label_selector.split(",") if part
        )
        items = []
        for (ns, name), body in list(self.pods.items()):
            labels = body["metadata"].get("labels") or {}
            if ns != namespace:
                continue
            if any(labels.get(k) != v for k, v in wanted.items()):
                continue
            items.append(self._to_model(ns, name, labels))
        return client.V1PodList(items=items)

    def read_namespaced_pod(self, name: str, namespace: str) -> client.V1Pod:
        body = self.pods.get((namespace, name))
        if body is None:
            raise ApiException(status=404, reason="Not Found")
        return self._to_model(namespace, name, body["metadata"].get("labels"))

    def create_namespaced_pod(
        self, namespace: str, body: dict[str, Any]
    ) -> dict[str, Any]:
        name = body["metadata"]["name"]
        if name in self.fail_create:
            raise ApiException(status=500, reason="Internal Server Error")
        if (namespace, name) in self.pods:
            raise ApiException(status=409, reason="AlreadyExists")
        self.pods[(namespace, name)] = copy.deepcopy(body)
        self.created.append(name)
        return body

    def delete_namespaced_pod(self, name: str, namespace: str) -> None:
        if name in self.fail_delete:
            raise ApiException(status=500, reason="Internal Server Error")
        if (namespace, name) not in self.pods:
            raise ApiException(status=404, reason="Not Found")
        del self.pods[(namespace, name)]
        self.terminating.discard((namespace, name))
        self.deleted.append(name)

    def _to_model(
        self, namespace: str, name: str, labels: dict[str, str] | None
    ) -> client.V1Pod:
        deletion_timestamp = None
        if (namespace, name) in self.terminating:
            deletion_timestamp = datetime.now(timezone.utc)
        return client.V1Pod(
            metadata=client.V1ObjectMeta(
                name=name,
                namespace=namespace,
                labels=labels,
                deletion_timestamp=deletion_timestamp,
            )
        )


class FakeK8sClient:
    """Stands in for the ``kubernetes.client`` module."""

    def __init__(self, core: FakeCoreV1Api | None = None) -> None:
        self.core = core or FakeCoreV1Api()

    def CoreV1Api(self) -> FakeCoreV1Api:  # noqa: N802
        return self.core


def wait_until(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def core_api() -> FakeCoreV1Api:
    return FakeCoreV1Api()


@pytest.fixture
def k8s_client(core_api: FakeCoreV1Api) -> FakeK8sClient:
    return FakeK8sClient(core_api)
