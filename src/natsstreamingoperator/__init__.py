"""Kubernetes operator for NATS Streaming clusters."""

__all__ = ("__version__",)

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("nats-streaming-operator")
except PackageNotFoundError:
    # Not installed, for example when running from a source checkout.
    __version__ = "0.0.0"
