"""
Mutation of the workloads' pod templates before submission.

The functions here change the pod spec in place, but perform no I/O
and are idempotent (a repeated mutation changes nothing). The values
are provided by the callers, who fetch the cluster configuration beforehand.

Only the environment variables of the explicitly named containers are touched.
All other fields of the pod spec are preserved as they are in the manifest.
"""
import urllib.parse
from collections.abc import Collection, Iterable, Iterator, Mapping

from kapply.structs import bodies

HTTP_PROXY = 'HTTP_PROXY'
HTTPS_PROXY = 'HTTPS_PROXY'
NO_PROXY = 'NO_PROXY'
KUBERNETES_SERVICE_HOST = 'KUBERNETES_SERVICE_HOST'
KUBERNETES_SERVICE_PORT = 'KUBERNETES_SERVICE_PORT'


def parse_container_names(value: str) -> list[str]:
    """
    Interpret an annotation value as a list of container names.

    The names are comma-separated and are matched exactly, so no whitespace
    stripping is done; the empty items (e.g. from a trailing comma) are skipped.
    """
    return [name for name in value.split(',') if name]


def update_podspec_with_proxy(
        podspec: bodies.RawPodSpec,
        container_names: Collection[str],
        http_proxy: str,
        https_proxy: str,
        no_proxy: str,
) -> None:
    """
    Inject the cluster-wide proxy into the named containers' environment.

    The proxy variables are always set, even if empty: an absent proxy config
    means no proxy, which must override whatever the image or manifest implies.
    """
    upsert_env(podspec, container_names, {
        HTTP_PROXY: http_proxy,
        HTTPS_PROXY: https_proxy,
        NO_PROXY: no_proxy,
    })


def update_podspec_with_internal_lb(
        podspec: bodies.RawPodSpec,
        container_names: Collection[str],
        host: str,
        port: str,
) -> None:
    """
    Point the named containers to the API server's internal load balancer.

    An empty host or port leaves the corresponding variable as in the manifest.
    """
    values: dict[str, str] = {}
    if host:
        values[KUBERNETES_SERVICE_HOST] = host
    if port:
        values[KUBERNETES_SERVICE_PORT] = port
    if values:
        upsert_env(podspec, container_names, values)


def split_internal_api_url(url: str) -> tuple[str, str]:
    """
    Extract the host & port of the internal API server URL as strings.

    If the URL has no explicit port, the port is an empty string (no defaults
    are implied by the scheme). Invalid ports raise a `ValueError`.
    """
    parsed = urllib.parse.urlsplit(url)
    host = parsed.hostname or ''
    port = parsed.port  # raises ValueError if malformed
    return host, str(port) if port is not None else ''


def upsert_env(
        podspec: bodies.RawPodSpec,
        container_names: Collection[str],
        values: Mapping[str, str],
) -> None:
    """
    Set the environment variables in the named containers, replacing the old ones.

    All previous entries with the same names are removed, including those with
    ``valueFrom``, so that exactly one entry per name remains. The new entries
    are placed where the first old entry of the same name was, or at the end.
    """
    for container in _iter_containers(podspec, container_names):
        env: list[bodies.RawEnvVar] = []
        pending = dict(values)
        for var in container.get('env') or []:
            name = var.get('name')
            if name in values:
                if name in pending:
                    env.append({'name': name, 'value': pending.pop(name)})
            else:
                env.append(var)
        env.extend({'name': name, 'value': value} for name, value in pending.items())
        container['env'] = env


def _iter_containers(
        podspec: bodies.RawPodSpec,
        container_names: Iterable[str],
) -> Iterator[bodies.RawContainer]:
    names = set(container_names)
    for key in ('containers', 'initContainers'):
        for container in podspec.get(key) or []:
            if container.get('name') in names:
                yield container
