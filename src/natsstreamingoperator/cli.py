"""Command-line entry point of the operator."""

__all__ = ("main",)

import platform
import sys

import click
import structlog

from natsstreamingoperator import __version__, state
from natsstreamingoperator.controller import Controller, ShutdownCause
from natsstreamingoperator.logconfig import configure_logging
from natsstreamingoperator.startup import ControllerSetupError


@click.command()
@click.option(
    "--namespace",
    default=state.namespace,
    show_default="$MY_POD_NAMESPACE or all namespaces",
    help="Namespace where the NATS Streaming clusters are managed.",
)
@click.option(
    "--resync-period",
    type=click.IntRange(min=1),
    default=state.resync_period,
    show_default=True,
    help="Seconds between full resyncs of the clusters.",
)
@click.option(
    "--debug/--no-debug",
    default=state.debug,
    help="Enable debug logging.",
)
@click.option(
    "--no-signals",
    is_flag=True,
    default=False,
    help="Do not install the SIGINT and SIGTERM handlers.",
)
@click.version_option(version=__version__, prog_name="nats-streaming-operator")
def main(
    namespace: str, resync_period: int, debug: bool, no_signals: bool
) -> None:
    """Run the NATS Streaming Operator."""
    configure_logging(debug=debug)
    logger = structlog.get_logger("natsstreamingoperator")
    logger.info(f"Starting NATS Streaming Operator v{__version__}")
    logger.info(f"Python Version: {platform.python_version()}")

    controller = Controller(
        namespace or None,
        resync_period=resync_period,
        enable_signals=not no_signals,
    )
    try:
        cause = controller.run()
    except ControllerSetupError as e:
        logger.error(str(e))
        sys.exit(1)

    if cause is ShutdownCause.IMMEDIATE:
        # In-flight handlers on the operator thread are abandoned.
        sys.exit(0)
    if cause is ShutdownCause.CANCELLED:
        # Nothing else cancels the controller from the command line.
        sys.exit(1)
