"""Process-wide settings as module-level attributes.

Values are read from the environment when the module is first imported. The
command-line interface may override ``namespace``, ``resync_period`` and
``debug`` before the controller starts.
"""

import os

CRD_GROUP = "streaming.nats.io"
"""API group of the NatsStreamingCluster custom resource."""

CRD_VERSION = "v1alpha1"
"""API version of the NatsStreamingCluster custom resource."""

CRD_PLURAL = "natsstreamingclusters"
"""Plural name of the NatsStreamingCluster custom resource."""

CRD_KIND = "NatsStreamingCluster"

APP_LABEL = "nats-streaming"
"""Value of the ``app`` label carried by every managed pod."""

CLUSTER_LABEL = "stan_cluster"
"""Label key holding the name of the cluster that owns a pod."""

CONTAINER_NAME = "stan"

SERVER_BINARY = "/nats-streaming-server"

NATS_SCHEME = "nats"

CLIENT_PORT = 4222
"""Port of the NATS service the streaming servers connect to."""

MONITORING_PORT = 8222

LOCAL_STORE_DIR = "store"
"""Store directory used when a cluster does not set ``config.storeDir``."""

DEFAULT_RESTART_POLICY = "OnFailure"

default_image = os.environ.get("STAN_DEFAULT_IMAGE", "nats-streaming:0.10.2")
"""Image used for clusters that do not set ``spec.image``."""

namespace = os.environ.get("MY_POD_NAMESPACE", "")
"""The namespace watched by the operator. Empty means all namespaces."""

kubeconfig = os.environ.get("KUBERNETES_CONFIG_FILE", "")
"""Path to a kubeconfig, for running the operator outside of a cluster."""

resync_period = int(os.environ.get("STAN_RESYNC_PERIOD", "30"))
"""Seconds between full relists of the NatsStreamingCluster resources."""

debug = os.environ.get("DEBUG", "") == "true"
