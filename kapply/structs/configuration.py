"""
All configuration flags, options, settings to fine-tune the manifest application.

All settings are grouped semantically just for convenience
(instead of a flat mega-object with all the values in it).

Some of the settings are flags, some are scalars, some are optional,
some are not (but all of them have reasonable defaults).

The builder mode is intentionally not a setting: it is a constructor argument
of :class:`kapply.building.builders.Builder` and is fixed for its lifetime.
"""
import dataclasses
from collections.abc import Iterable


@dataclasses.dataclass
class NetworkingSettings:

    request_timeout: float | None = 5 * 60  # == aiohttp.client.DEFAULT_TIMEOUT
    """
    A timeout for the whole request to the API (connect + send + receive).
    """

    connect_timeout: float | None = None
    """
    A timeout for the connection establishment only.
    """

    error_backoffs: Iterable[float] = (1, 1, 2, 3, 5, 8, 13)
    """
    Backoff intervals in case of connectivity issues, server errors, or timeouts.

    Only these transport-level failures are retried, and only inside one request.
    The API errors with 4xx statuses are escalated immediately.
    Every attempt is logged as an error, and the last one is escalated.

    To disable the retries, set it to ``[]`` or ``()``.
    """


@dataclasses.dataclass
class BuildingSettings:
    """
    Settings for the kind-specific mutation of the manifests before submission.
    """

    inject_proxy_annotation: str = 'config.openshift.io/inject-proxy'
    """
    An annotation with comma-separated container names to inject the proxy into.
    """

    proxy_name: str = 'cluster'
    """
    The name of the cluster-wide proxy configuration object.
    """

    infrastructure_name: str = 'cluster'
    """
    The name of the cluster-wide infrastructure configuration object.
    """

    self_namespace: str = 'openshift-cluster-version'
    self_name: str = 'cluster-version-operator'
    """
    The namespace & name of the controller's own deployment.

    Only this deployment gets its API server address rewritten
    to the internal load balancer of the cluster.
    """

    self_container: str = 'cluster-version-operator'
    """
    The container of the controller's own deployment to rewrite the address in.
    """


@dataclasses.dataclass
class PollingSettings:
    """
    Settings for the drivers re-checking the workloads' health after applying.
    """

    backoffs: Iterable[float] = (1, 2, 3, 5, 8, 13, 21, 34, 55)
    """
    Delays between the health re-checks of one workload, in seconds.

    The builders never re-check on their own: they report the current state.
    The drivers sleep for these intervals and re-check until success or until
    the intervals are exhausted; then, the last health failure is escalated.
    """


@dataclasses.dataclass
class GatingSettings:
    """
    Settings for the built-in precondition checks.
    """

    featuregate_name: str = 'cluster'
    """
    The name of the cluster-wide feature gates object.
    """

    clusterversion_name: str = 'version'
    """
    The name of the cluster-wide cluster version object.
    """


@dataclasses.dataclass
class Settings:
    networking: NetworkingSettings = dataclasses.field(default_factory=NetworkingSettings)
    building: BuildingSettings = dataclasses.field(default_factory=BuildingSettings)
    polling: PollingSettings = dataclasses.field(default_factory=PollingSettings)
    gating: GatingSettings = dataclasses.field(default_factory=GatingSettings)
