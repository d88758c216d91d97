"""The controller run loop and its shutdown handling."""

from __future__ import annotations

__all__ = ("Controller", "ShutdownCause")

import enum
import logging
import signal
import threading
from collections.abc import Callable
from types import FrameType
from typing import Any

import kopf
import structlog

from natsstreamingoperator import state
from natsstreamingoperator.handlers import build_registry
from natsstreamingoperator.reconciler import Reconciler
from natsstreamingoperator.startup import load_k8sclient, resolve_namespace


class ShutdownCause(enum.Enum):
    """Why the run loop returned."""

    GRACEFUL = "graceful"
    """`Controller.shutdown` or SIGTERM. The operator was drained."""

    IMMEDIATE = "immediate"
    """SIGINT. The run loop returned without waiting for in-flight work."""

    CANCELLED = "cancelled"
    """The caller set the stop flag passed to `Controller.run`, or the
    operator exited on its own.
    """


class Controller:
    """Manages NATS Streaming clusters running in Kubernetes.

    The kopf operator runs on a worker thread, so the signal handlers of the
    main thread decide how it is stopped.

    Parameters
    ----------
    namespace : `str`, optional
        Namespace where the clusters are managed. Resolved from the
        environment if not set (see
        `natsstreamingoperator.startup.resolve_namespace`).
    k8s_client : optional
        A Kubernetes client. Created from the available configuration by
        `setup` if not set.
    resync_period : `int`
        Seconds between periodic reconciliations of each cluster.
    enable_signals : `bool`
        Whether `run` installs the SIGINT and SIGTERM handlers.
    reconciler : `natsstreamingoperator.reconciler.Reconciler`, optional
        Reconciler to use instead of one built by `setup`.
    runner : callable, optional
        Runs the operator, with the keyword arguments of ``kopf.run``.
    """

    def __init__(
        self,
        namespace: str | None = None,
        *,
        k8s_client: Any | None = None,
        resync_period: int | None = None,
        enable_signals: bool = True,
        reconciler: Reconciler | None = None,
        runner: Callable[..., None] | None = None,
    ) -> None:
        self.namespace = namespace
        self.k8s_client = k8s_client
        self.resync_period = (
            resync_period if resync_period is not None else state.resync_period
        )
        self.enable_signals = enable_signals
        self.reconciler = reconciler
        self._runner = runner or kopf.run
        self._logger = structlog.get_logger(__name__)
        self._stop_flag = threading.Event()
        self._operator_stop = threading.Event()
        self._cause: ShutdownCause | None = None
        self._cause_lock = threading.Lock()

    @property
    def stopping(self) -> bool:
        return self._cause is not None or self._stop_flag.is_set()

    def setup(self) -> Reconciler:
        """Prepare the client, the namespace and the reconciler.

        Returns
        -------
        reconciler : `natsstreamingoperator.reconciler.Reconciler`
            The reconciler that the handlers dispatch to.

        Raises
        ------
        natsstreamingoperator.startup.ControllerSetupError
            Raised if the Kubernetes client cannot be configured.
        """
        if self.k8s_client is None:
            self.k8s_client = load_k8sclient(logger=self._logger)
        self.namespace = resolve_namespace(self.namespace)
        if self.reconciler is None:
            self.reconciler = Reconciler(self.k8s_client)
        return self.reconciler

    def operator_kwargs(self, reconciler: Reconciler) -> dict[str, Any]:
        """Build the keyword arguments of ``kopf.run``."""
        settings = kopf.OperatorSettings()
        settings.posting.level = logging.WARNING
        kwargs: dict[str, Any] = {
            "registry": build_registry(self.resync_period),
            "settings": settings,
            "standalone": True,
            "stop_flag": self._operator_stop,
            "memo": kopf.Memo(reconciler=reconciler),
        }
        if self.namespace:
            kwargs["namespaces"] = [self.namespace]
        else:
            kwargs["clusterwide"] = True
        return kwargs

    def run(
        self, stop_flag: threading.Event | None = None
    ) -> ShutdownCause | None:
        """Run the controller until it is shut down or cancelled.

        Parameters
        ----------
        stop_flag : `threading.Event`, optional
            Cancels the controller when set.

        Returns
        -------
        cause : `ShutdownCause` or `None`
            `None` after a graceful shutdown requested through `shutdown` or
            SIGTERM, otherwise the cause of cancellation.
        """
        if self.enable_signals:
            self.install_signal_handlers()

        reconciler = self.setup()

        if stop_flag is not None:
            threading.Thread(
                target=self._wait_for_cancel,
                args=(stop_flag,),
                name="stop-flag-checker",
                daemon=True,
            ).start()

        self._logger.info(
            "Watching NatsStreamingClusters",
            namespace=self.namespace or "(all)",
            resync_period=self.resync_period,
        )
        worker = threading.Thread(
            target=self._run_operator,
            args=(self.operator_kwargs(reconciler),),
            name="kopf-operator",
            daemon=True,
        )
        worker.start()

        self._stop_flag.wait()
        cause = self._cause or ShutdownCause.CANCELLED

        if cause is ShutdownCause.IMMEDIATE:
            self._logger.info("Exiting...")
            return cause

        self._operator_stop.set()
        worker.join()
        self._logger.info("Bye")
        return None if cause is ShutdownCause.GRACEFUL else cause

    def shutdown(self, immediate: bool = False) -> None:
        """Stop the controller.

        A graceful shutdown waits for the operator to finish the handlers in
        progress. An immediate one returns from `run` right away. Only the
        first request is honored.
        """
        cause = ShutdownCause.IMMEDIATE if immediate else ShutdownCause.GRACEFUL
        self._cancel(cause)

    def handle_signal(self, signum: int, frame: FrameType | None = None) -> None:
        """Handle SIGINT (immediate exit) and SIGTERM (graceful shutdown)."""
        self._logger.debug(f"Trapped '{signal.Signals(signum).name}' signal")
        if self.stopping:
            return
        if signum == signal.SIGINT:
            self.shutdown(immediate=True)
        elif signum == signal.SIGTERM:
            self.shutdown()

    def install_signal_handlers(self) -> bool:
        """Install `handle_signal` for SIGINT and SIGTERM.

        Signal handlers can only be installed from the main thread; elsewhere
        this logs a warning and returns `False`.
        """
        if threading.current_thread() is not threading.main_thread():
            self._logger.warning(
                "Signals are ignored: not running in the main thread"
            )
            return False
        signal.signal(signal.SIGINT, self.handle_signal)
        signal.signal(signal.SIGTERM, self.handle_signal)
        return True

    def _run_operator(self, kwargs: dict[str, Any]) -> None:
        try:
            self._runner(**kwargs)
        except Exception:
            self._logger.exception("The operator failed")
        if not self.stopping:
            self._logger.error("The operator exited unexpectedly")
        self._cancel(ShutdownCause.CANCELLED)

    def _cancel(self, cause: ShutdownCause) -> None:
        with self._cause_lock:
            if self._cause is not None:
                return
            self._cause = cause
        self._stop_flag.set()

    def _wait_for_cancel(self, stop_flag: threading.Event) -> None:
        # Also returns once the controller stops on its own.
        while not stop_flag.wait(timeout=0.1):
            if self._stop_flag.is_set():
                return
        self._cancel(ShutdownCause.CANCELLED)
