"""Tests for the natsstreamingoperator.controller module."""

from __future__ import annotations

import signal
import threading
from typing import Any

import kopf
import pytest
from conftest import FakeCoreV1Api, FakeK8sClient, get_command, wait_until

from natsstreamingoperator import state
from natsstreamingoperator.controller import Controller, ShutdownCause
from natsstreamingoperator.handlers import create_cluster, resync_cluster
from natsstreamingoperator.reconciler import Reconciler
from natsstreamingoperator.startup import ControllerSetupError


class FakeOperator:
    """Stands in for ``kopf.run``.

    It blocks until its stop flag is set, or until ``release`` is set if
    ``stubborn``. ``actions`` are called with the memo before blocking.
    """

    def __init__(
        self,
        *,
        stubborn: bool = False,
        exit_at_once: bool = False,
        actions: list[Any] | None = None,
    ) -> None:
        self.stubborn = stubborn
        self.exit_at_once = exit_at_once
        self.actions = actions or []
        self.kwargs: dict[str, Any] = {}
        self.started = threading.Event()
        self.finished = threading.Event()
        self.release = threading.Event()

    def __call__(self, **kwargs: Any) -> None:
        self.kwargs = kwargs
        self.started.set()
        for action in self.actions:
            action(kwargs["memo"])
        if not self.exit_at_once:
            if self.stubborn:
                self.release.wait(timeout=10)
            else:
                kwargs["stop_flag"].wait(timeout=10)
        self.finished.set()


class ControllerThread(threading.Thread):
    """Runs a controller and keeps the value returned by `Controller.run`."""

    def __init__(
        self,
        controller: Controller,
        stop_flag: threading.Event | None = None,
    ) -> None:
        super().__init__(daemon=True)
        self.controller = controller
        self.stop_flag = stop_flag
        self.result: ShutdownCause | None = None

    def run(self) -> None:
        self.result = self.controller.run(self.stop_flag)


def make_controller(
    operator: FakeOperator,
    k8s_client: FakeK8sClient | None = None,
    namespace: str = "default",
) -> Controller:
    return Controller(
        namespace,
        k8s_client=k8s_client or FakeK8sClient(),
        enable_signals=False,
        runner=operator,
    )


def test_graceful_shutdown_drains_the_operator() -> None:
    operator = FakeOperator()
    controller = make_controller(operator)
    thread = ControllerThread(controller)
    thread.start()
    assert operator.started.wait(timeout=5)

    controller.shutdown()
    thread.join(timeout=5)

    assert not thread.is_alive()
    assert thread.result is None
    assert operator.kwargs["stop_flag"].is_set()
    assert operator.finished.is_set()


def test_immediate_shutdown_does_not_wait_for_the_operator() -> None:
    operator = FakeOperator(stubborn=True)
    controller = make_controller(operator)
    thread = ControllerThread(controller)
    thread.start()
    assert operator.started.wait(timeout=5)

    controller.shutdown(immediate=True)
    thread.join(timeout=5)

    assert not thread.is_alive()
    assert thread.result is ShutdownCause.IMMEDIATE
    assert not operator.kwargs["stop_flag"].is_set()
    assert not operator.finished.is_set()
    operator.release.set()


def test_stop_flag_cancels_the_controller() -> None:
    operator = FakeOperator()
    controller = make_controller(operator)
    stop_flag = threading.Event()
    thread = ControllerThread(controller, stop_flag)
    thread.start()
    assert operator.started.wait(timeout=5)

    stop_flag.set()
    thread.join(timeout=5)

    assert not thread.is_alive()
    assert thread.result is ShutdownCause.CANCELLED
    assert operator.finished.is_set()


def test_operator_exiting_on_its_own_cancels_the_controller() -> None:
    controller = make_controller(FakeOperator(exit_at_once=True))

    assert controller.run() is ShutdownCause.CANCELLED


def test_operator_failure_cancels_the_controller() -> None:
    def fail(**kwargs: Any) -> None:
        raise RuntimeError("event loop is closed")

    controller = Controller(
        "default",
        k8s_client=FakeK8sClient(),
        enable_signals=False,
        runner=fail,
    )

    assert controller.run() is ShutdownCause.CANCELLED


def test_only_the_first_shutdown_request_counts() -> None:
    operator = FakeOperator()
    controller = make_controller(operator)

    controller.shutdown()
    controller.shutdown(immediate=True)

    assert controller.stopping
    assert controller.run() is None


def test_sigterm_is_a_graceful_shutdown() -> None:
    operator = FakeOperator()
    controller = make_controller(operator)

    controller.handle_signal(signal.SIGTERM)
    # Further signals are ignored once shutting down.
    controller.handle_signal(signal.SIGINT)

    assert controller.run() is None
    assert operator.finished.is_set()


def test_sigint_is_an_immediate_exit() -> None:
    operator = FakeOperator(stubborn=True)
    controller = make_controller(operator)

    controller.handle_signal(signal.SIGINT)
    controller.handle_signal(signal.SIGTERM)

    assert controller.run() is ShutdownCause.IMMEDIATE
    assert operator.started.wait(timeout=5)
    assert not operator.kwargs["stop_flag"].is_set()
    operator.release.set()


def test_signal_handlers_are_installed_from_the_main_thread(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    installed = {}
    monkeypatch.setattr(
        signal,
        "signal",
        lambda signum, handler: installed.__setitem__(signum, handler),
    )
    controller = make_controller(FakeOperator())

    assert controller.install_signal_handlers()
    assert installed == {
        signal.SIGINT: controller.handle_signal,
        signal.SIGTERM: controller.handle_signal,
    }


def test_signal_handlers_need_the_main_thread() -> None:
    controller = make_controller(FakeOperator())
    results = []
    thread = threading.Thread(
        target=lambda: results.append(controller.install_signal_handlers())
    )
    thread.start()
    thread.join(timeout=5)

    assert results == [False]


def test_setup_error_propagates(monkeypatch: pytest.MonkeyPatch) -> None:
    def fail(*args: Any, **kwargs: Any) -> None:
        raise ControllerSetupError("Could not configure Kubernetes client")

    monkeypatch.setattr(
        "natsstreamingoperator.controller.load_k8sclient", fail
    )
    operator = FakeOperator()
    controller = Controller(enable_signals=False, runner=operator)

    with pytest.raises(ControllerSetupError):
        controller.run()
    assert not operator.started.is_set()


def test_setup_resolves_the_namespace(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("MY_POD_NAMESPACE", "stan")

    controller = Controller(k8s_client=FakeK8sClient(), enable_signals=False)
    reconciler = controller.setup()

    assert controller.namespace == "stan"
    assert isinstance(reconciler, Reconciler)
    assert controller.reconciler is reconciler

    explicit = Controller(
        "messaging", k8s_client=FakeK8sClient(), enable_signals=False
    )
    explicit.setup()
    assert explicit.namespace == "messaging"


def test_operator_arguments_for_one_namespace() -> None:
    controller = Controller(
        "stan",
        k8s_client=FakeK8sClient(),
        enable_signals=False,
        resync_period=12,
    )
    reconciler = controller.setup()

    kwargs = controller.operator_kwargs(reconciler)

    assert kwargs["namespaces"] == ["stan"]
    assert "clusterwide" not in kwargs
    assert kwargs["standalone"] is True
    assert isinstance(kwargs["registry"], kopf.OperatorRegistry)
    assert isinstance(kwargs["settings"], kopf.OperatorSettings)
    assert kwargs["memo"].reconciler is reconciler
    assert isinstance(kwargs["stop_flag"], threading.Event)


def test_operator_arguments_for_all_namespaces(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.delenv("MY_POD_NAMESPACE", raising=False)
    monkeypatch.setattr(state, "namespace", "")
    controller = Controller(k8s_client=FakeK8sClient(), enable_signals=False)
    reconciler = controller.setup()

    kwargs = controller.operator_kwargs(reconciler)

    assert kwargs["clusterwide"] is True
    assert "namespaces" not in kwargs


def test_cluster_converges_through_the_handlers() -> None:
    body = {
        "apiVersion": "streaming.nats.io/v1alpha1",
        "kind": "NatsStreamingCluster",
        "metadata": {
            "name": "example-stan",
            "namespace": "default",
            "uid": "uid-example-stan",
        },
        "spec": {"size": 3, "natsSvc": "example-nats"},
    }
    core_api = FakeCoreV1Api()
    operator = FakeOperator(
        actions=[
            lambda memo: create_cluster(body=body, memo=memo),
            lambda memo: resync_cluster(body=body, memo=memo),
        ]
    )
    controller = make_controller(operator, FakeK8sClient(core_api))
    thread = ControllerThread(controller)
    thread.start()
    try:
        assert wait_until(lambda: len(core_api.pod_names()) == 3)
    finally:
        controller.shutdown()
        thread.join(timeout=5)

    assert not thread.is_alive()
    assert thread.result is None
    assert sorted(core_api.pod_names()) == [
        "example-stan-1",
        "example-stan-2",
        "example-stan-3",
    ]
    flagged = [
        name
        for name in core_api.pod_names()
        if "-cluster_bootstrap" in get_command(core_api.get_body(name))
    ]
    assert flagged == ["example-stan-1"]
