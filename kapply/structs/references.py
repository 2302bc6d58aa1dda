import dataclasses
import urllib.parse
from collections.abc import Iterator, Mapping
from typing import NewType

# A specific really existing addressable namespace (at least, the one assumed to be so).
# Made as a NewType for stricter type-checking to avoid collisions with other strings.
NamespaceName = NewType('NamespaceName', str)

# A namespace reference usable in the API calls. `None` means cluster-wide API calls.
Namespace = NamespaceName | None


@dataclasses.dataclass(frozen=True, eq=False, repr=False)
class Resource:
    """
    A reference to a very specific built-in or custom resource kind.

    It is used to form the K8s API URLs. Generally, K8s API only needs
    an API group, an API version, and a plural name of the resource.
    The kind is remembered to match the manifests against the known resources,
    and for logging.
    """

    group: str
    """
    The resource's API group; e.g. ``"apps"``, ``"config.openshift.io"``.
    For Core v1 API resources, an empty string: ``""``.
    """

    version: str
    """
    The resource's API version; e.g. ``"v1"``, ``"v1beta1"``, etc.
    """

    plural: str
    """
    The resource's plural name; e.g. ``"deployments"``, ``"daemonsets"``.
    It is used as an API endpoint, together with API group & version.
    """

    kind: str | None = None
    """
    The resource's kind (as in YAML files); e.g. ``"Deployment"``.
    """

    namespaced: bool | None = None
    """
    Whether the resource is namespaced (``True``) or cluster-scoped (``False``).
    """

    def __hash__(self) -> int:
        return hash((self.group, self.version, self.plural))

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Resource):
            self_tuple = (self.group, self.version, self.plural)
            other_tuple = (other.group, other.version, other.plural)
            return self_tuple == other_tuple
        else:
            return NotImplemented

    def __repr__(self) -> str:
        return f'{self.plural}.{self.version}.{self.group}'.strip('.')

    # Mostly for tests and for logging.
    def __iter__(self) -> Iterator[str]:
        return iter((self.group, self.version, self.plural))

    @property
    def api_version(self) -> str:
        """ The ``apiVersion`` field as used in the manifests. """
        return f'{self.group}/{self.version}' if self.group else self.version

    def get_url(
            self,
            *,
            server: str | None = None,
            namespace: Namespace = None,
            name: str | None = None,
            params: Mapping[str, str] | None = None,
    ) -> str:
        """
        Build a URL to be used with K8s API.

        If the namespace is not set, a cluster-wide URL is returned.
        For cluster-scoped resources, the namespace is ignored.

        If the name is not set, the URL for the resource list is returned.
        Otherwise (if set), the URL for the individual resource is returned.

        Params go to the query parameters (``?param1=value1&param2=value2...``).
        """
        if not self.namespaced and namespace is not None:
            raise ValueError("Specific namespaces are not supported for cluster-scoped resources.")
        if self.namespaced and namespace is None and name is not None:
            raise ValueError("Specific namespaces are required for specific namespaced resources.")

        parts: list[str | None] = [
            '/api' if self.group == '' and self.version == 'v1' else '/apis',
            self.group,
            self.version,
            'namespaces' if self.namespaced and namespace is not None else None,
            namespace if self.namespaced and namespace is not None else None,
            self.plural,
            name,
        ]

        query = urllib.parse.urlencode(params, encoding='utf-8') if params else ''
        path = '/'.join([part for part in parts if part])
        url = path + ('?' if query else '') + query
        return url if server is None else server.rstrip('/') + '/' + url.lstrip('/')


def parse_api_version(api_version: str) -> tuple[str, str]:
    """
    Split the manifest's ``apiVersion`` into the API group and version.

    The core API has no group: ``"v1"`` becomes ``("", "v1")``.
    """
    group, _, version = api_version.rpartition('/')
    return group, version


# Well-known workload resources with the kind-specific building & health-checking.
DEPLOYMENTS = Resource('apps', 'v1', 'deployments', kind='Deployment', namespaced=True)
DAEMONSETS = Resource('apps', 'v1', 'daemonsets', kind='DaemonSet', namespaced=True)

# Well-known core resources that are only submitted, never verified.
NAMESPACES = Resource('', 'v1', 'namespaces', kind='Namespace', namespaced=False)
SERVICEACCOUNTS = Resource('', 'v1', 'serviceaccounts', kind='ServiceAccount', namespaced=True)
CONFIGMAPS = Resource('', 'v1', 'configmaps', kind='ConfigMap', namespaced=True)
SERVICES = Resource('', 'v1', 'services', kind='Service', namespaced=True)

# Cluster-wide configuration objects read for the mutation and the preconditions.
PROXIES = Resource('config.openshift.io', 'v1', 'proxies', kind='Proxy', namespaced=False)
INFRASTRUCTURES = Resource('config.openshift.io', 'v1', 'infrastructures',
                           kind='Infrastructure', namespaced=False)
FEATUREGATES = Resource('config.openshift.io', 'v1', 'featuregates',
                        kind='FeatureGate', namespaced=False)
CLUSTERVERSIONS = Resource('config.openshift.io', 'v1', 'clusterversions',
                           kind='ClusterVersion', namespaced=False)
