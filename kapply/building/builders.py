"""
Application of the manifests to the cluster, one resource at a time.

Every manifest goes through the same sequence of steps::

    mutate -> submit -> verify (unless initializing)

The steps are specific to the resource kinds: e.g. the deployments get
the proxy injected and are verified by their status conditions, while the
config-maps are only submitted. The kind-specific variants (`KindBuilder` and
its descendants) are resolved once per manifest via a `BuilderRegistry`.

The `Builder` keeps no state between the calls, except for its configuration:
the mode, the settings, the registry. Concurrent applications of distinct
resources are safe; the order of resources is the callers' responsibility.
"""
import copy
import enum
from collections.abc import Iterator, Mapping
from typing import Any

from kapply.building import health, mutating
from kapply.clients import applying, auth, fetching
from kapply.engines import loggers
from kapply.helpers import typedefs
from kapply.structs import bodies, configuration, references


# As with kubectl, when neither the manifest nor the credentials specify a namespace.
DEFAULT_NAMESPACE = 'default'


class BuilderMode(enum.Enum):
    """ How thoroughly the manifests are applied. """
    APPLYING = enum.auto()
    INITIALIZING = enum.auto()  # no health verification, only the submission.


class UnsupportedKindError(LookupError):
    """ The manifest's kind is not known to the registry. """


class KindBuilder:
    """
    The steps of manifest application for a specific resource kind.

    This generic variant only submits the manifests as they are.
    The kind-specific descendants add the mutation and the verification.
    The variants are stateless and can be shared by multiple builders.
    """

    def __init__(self, resource: references.Resource) -> None:
        super().__init__()
        self.resource = resource

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}({self.resource!r})'

    async def mutate(
            self,
            body: bodies.RawBody,
            *,
            settings: configuration.Settings,
            logger: typedefs.Logger,
    ) -> None:
        pass

    async def submit(
            self,
            body: bodies.RawBody,
            *,
            settings: configuration.Settings,
            logger: typedefs.Logger,
    ) -> None:
        await applying.create_or_update(
            resource=self.resource,
            body=body,
            settings=settings,
            logger=logger,
        )

    async def check_health(
            self,
            body: bodies.RawBody,
            *,
            settings: configuration.Settings,
            logger: typedefs.Logger,
    ) -> None:
        pass


class WorkloadBuilder(KindBuilder):
    """
    A common variant for the workloads with pod templates.

    If requested via the annotation, the cluster-wide proxy is injected into
    the named containers. If the proxy configuration is absent in the cluster,
    the empty values are injected.
    """

    async def mutate(
            self,
            body: bodies.RawBody,
            *,
            settings: configuration.Settings,
            logger: typedefs.Logger,
    ) -> None:
        annotations = bodies.get_annotations(body)
        container_names_str = annotations.get(settings.building.inject_proxy_annotation)
        if container_names_str:
            proxy = await fetching.read_obj(
                resource=references.PROXIES,
                namespace=None,
                name=settings.building.proxy_name,
                default=None,
                settings=settings,
                logger=logger,
            )
            status: Mapping[str, Any] = (proxy or {}).get('status') or {}
            container_names = mutating.parse_container_names(container_names_str)
            logger.debug(f"Injecting the proxy into the containers: {container_names!r}")
            mutating.update_podspec_with_proxy(
                bodies.ensure_podspec(body),
                container_names,
                http_proxy=status.get('httpProxy') or '',
                https_proxy=status.get('httpsProxy') or '',
                no_proxy=status.get('noProxy') or '',
            )


class DeploymentBuilder(WorkloadBuilder):
    """
    The deployments' variant: the proxy injection, the own deployment's
    redirection to the internal load balancer, and the health verification.
    """

    async def mutate(
            self,
            body: bodies.RawBody,
            *,
            settings: configuration.Settings,
            logger: typedefs.Logger,
    ) -> None:
        await super().mutate(body, settings=settings, logger=logger)

        # Our own deployment survives the API server rollouts better via the internal LB
        # than via the localhost endpoint, which can be unresponsive for minutes.
        namespace = bodies.get_namespace(body)
        name = bodies.get_name(body)
        if namespace == settings.building.self_namespace and name == settings.building.self_name:
            infrastructure = await fetching.read_obj(
                resource=references.INFRASTRUCTURES,
                namespace=None,
                name=settings.building.infrastructure_name,
                default=None,
                settings=settings,
                logger=logger,
            )
            if infrastructure is None:
                logger.debug("No infrastructure config; keeping the API server address as is.")
                return

            status: Mapping[str, Any] = infrastructure.get('status') or {}
            url: str = status.get('apiServerInternalURL') or ''
            host, port = mutating.split_internal_api_url(url)
            logger.debug(f"Redirecting to the internal load balancer: host={host!r} port={port!r}")
            mutating.update_podspec_with_internal_lb(
                bodies.ensure_podspec(body),
                [settings.building.self_container],
                host=host,
                port=port,
            )

    async def check_health(
            self,
            body: bodies.RawBody,
            *,
            settings: configuration.Settings,
            logger: typedefs.Logger,
    ) -> None:
        await health.check_deployment_health(
            resource=self.resource, body=body, settings=settings, logger=logger)


class DaemonSetBuilder(WorkloadBuilder):
    """ The daemonsets' variant: the proxy injection and the deletion check. """

    async def check_health(
            self,
            body: bodies.RawBody,
            *,
            settings: configuration.Settings,
            logger: typedefs.Logger,
    ) -> None:
        await health.check_daemonset_health(
            resource=self.resource, body=body, settings=settings, logger=logger)


class BuilderRegistry:
    """
    The known resource kinds and their builder variants.

    The variants are keyed by the API group and the kind, as in the manifests.
    The API version is not the part of the key: the manifests are submitted
    to the version they declare, not to the one of the registered resource.
    """

    def __init__(self) -> None:
        super().__init__()
        self._variants: dict[tuple[str, str], KindBuilder] = {}

    def __iter__(self) -> Iterator[KindBuilder]:
        return iter(self._variants.values())

    def register(self, variant: KindBuilder) -> None:
        if not variant.resource.kind:
            raise ValueError(f"The resource kind is required for the variants: {variant!r}")
        key = (variant.resource.group, variant.resource.kind)
        self._variants[key] = variant

    def resolve(self, body: Mapping[str, Any]) -> KindBuilder:
        """
        Find a builder variant for a manifest by its ``apiVersion`` & ``kind``.
        """
        api_version: str = body.get('apiVersion') or ''
        kind: str = body.get('kind') or ''
        group, version = references.parse_api_version(api_version)
        try:
            variant = self._variants[(group, kind)]
        except KeyError:
            raise UnsupportedKindError(
                f"Unsupported manifest kind: {kind!r} of {api_version!r}") from None

        # The same kind can be served under different API versions. Submit as declared.
        if version and version != variant.resource.version:
            resource = references.Resource(
                group=variant.resource.group,
                version=version,
                plural=variant.resource.plural,
                kind=variant.resource.kind,
                namespaced=variant.resource.namespaced,
            )
            variant = copy.copy(variant)
            variant.resource = resource
        return variant


def make_default_registry() -> BuilderRegistry:
    registry = BuilderRegistry()
    registry.register(DeploymentBuilder(references.DEPLOYMENTS))
    registry.register(DaemonSetBuilder(references.DAEMONSETS))
    registry.register(KindBuilder(references.NAMESPACES))
    registry.register(KindBuilder(references.SERVICEACCOUNTS))
    registry.register(KindBuilder(references.CONFIGMAPS))
    registry.register(KindBuilder(references.SERVICES))
    return registry


class Builder:
    """
    Apply the manifests one by one, and verify the results if needed.

    The mode is fixed for the builder's lifetime. Multiple builders
    with different modes can co-exist independently.
    """

    def __init__(
            self,
            *,
            mode: BuilderMode = BuilderMode.APPLYING,
            settings: configuration.Settings | None = None,
            registry: BuilderRegistry | None = None,
            logger: typedefs.Logger | None = None,
    ) -> None:
        super().__init__()
        self._mode = mode
        self._settings = settings if settings is not None else configuration.Settings()
        self._registry = registry if registry is not None else make_default_registry()
        self._logger = logger if logger is not None else loggers.logger

    @property
    def mode(self) -> BuilderMode:
        return self._mode

    async def apply(self, manifest: bodies.RawBody) -> None:
        """
        Mutate, submit, and (unless initializing) verify one manifest.

        The manifest itself is not modified: the mutations go to a copy.
        The structured failures of the verification are raised as is,
        and so are the API errors of fetching and submission.
        """
        variant, body = self._prepare(manifest)
        logger = loggers.ObjectLogger(body=body, base=self._logger)

        await variant.mutate(body, settings=self._settings, logger=logger)

        logger.debug(f"Submitting {variant.resource!r}.")
        await variant.submit(body, settings=self._settings, logger=logger)

        if self._mode is BuilderMode.INITIALIZING:
            logger.debug("Skipping the health verification while initializing.")
            return

        await variant.check_health(body, settings=self._settings, logger=logger)
        logger.info(f"Applied {variant.resource!r} successfully.")

    async def check_health(self, manifest: bodies.RawBody) -> None:
        """
        Verify the live state of an already applied manifest.

        This is the last step of `apply` alone: for the callers that re-check
        the unhealthy workloads until they become healthy.
        """
        if self._mode is BuilderMode.INITIALIZING:
            return

        variant, body = self._prepare(manifest)
        logger = loggers.ObjectLogger(body=body, base=self._logger)
        await variant.check_health(body, settings=self._settings, logger=logger)

    def _prepare(self, manifest: bodies.RawBody) -> tuple[KindBuilder, bodies.RawBody]:
        """
        Resolve the variant and make a private copy of the manifest for it.

        The namespaced manifests without a namespace go to the default namespace
        of the current credentials, same as ``kubectl apply`` does it.
        """
        variant = self._registry.resolve(manifest)
        body: bodies.RawBody = copy.deepcopy(manifest)
        if variant.resource.namespaced and not bodies.get_namespace(body):
            context = auth.context_var.get(None)
            namespace = context.default_namespace if context is not None else None
            metadata = body.setdefault('metadata', {})
            metadata['namespace'] = namespace or DEFAULT_NAMESPACE
        return variant, body
