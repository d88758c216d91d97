"""Kopf login handler, sharing the configuration of the Kubernetes client."""

__all__ = ("login",)

from typing import Any

import kopf
import kubernetes

from natsstreamingoperator import state


def login(
    *,
    logger: Any,
    settings: kopf.OperatorSettings,
    **kwargs: Any,
) -> kopf.ConnectionInfo | None:
    """Authenticate kopf against the API server.

    Without ``KUBERNETES_CONFIG_FILE`` this is kopf's own login through the
    Kubernetes client library (in-cluster, then the default kubeconfig).
    Otherwise the credentials are read from that kubeconfig file.

    Raises
    ------
    kopf.LoginError
        Raised if the kubeconfig file cannot be loaded.
    """
    if not state.kubeconfig:
        return kopf.login_via_client(logger=logger, settings=settings, **kwargs)

    try:
        kubernetes.config.load_kube_config(config_file=state.kubeconfig)
    except (kubernetes.config.ConfigException, OSError) as e:
        raise kopf.LoginError(
            f"Cannot load kubeconfig {state.kubeconfig}: {e}"
        ) from e
    logger.debug(f"Client is configured via {state.kubeconfig}")

    config = kubernetes.client.Configuration.get_default_copy()
    header = config.get_api_key_with_prefix(
        "BearerToken"
    ) or config.get_api_key_with_prefix("authorization")
    scheme, token = _split_authorization(header)
    return kopf.ConnectionInfo(
        server=config.host,
        ca_path=config.ssl_ca_cert,
        insecure=not config.verify_ssl,
        username=config.username or None,
        password=config.password or None,
        scheme=scheme,
        token=token,
        certificate_path=config.cert_file,
        private_key_path=config.key_file,
    )


def _split_authorization(header: str | None) -> tuple[str | None, str | None]:
    # RFC 7235: "<scheme> <credentials>", or a bare token.
    if not header:
        return None, None
    parts = header.split(" ", 1)
    if len(parts) == 1:
        return None, parts[0]
    return parts[0], parts[1]
