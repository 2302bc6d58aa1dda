from collections.abc import Mapping
from typing import Any, cast

from kapply.clients import api, fetching
from kapply.helpers import typedefs
from kapply.structs import bodies, configuration, references


async def create_or_update(
        *,
        settings: configuration.Settings,
        resource: references.Resource,
        body: bodies.RawBody,
        logger: typedefs.Logger,
) -> bodies.RawBody:
    """
    Submit the desired state of an object: create it if absent, replace if present.

    The existing object is read first to learn its ``resourceVersion``,
    which is then used for the optimistic concurrency of the replacement.
    If the object changes in between, the API conflict error is escalated
    to the caller as is: the whole application can be retried later.

    Returns the object as stored by the server.
    """
    namespace = bodies.get_namespace(body) if resource.namespaced else None
    name = bodies.get_name(body)
    if not name:
        raise ValueError(f"The manifest of {resource!r} has no name.")

    existing = await fetching.read_obj(
        resource=resource,
        namespace=namespace,
        name=name,
        default=None,
        settings=settings,
        logger=logger,
    )

    if existing is None:
        logger.debug(f"Creating {resource!r} {name!r}.")
        created: bodies.RawBody = await api.post(
            url=resource.get_url(namespace=namespace),
            payload=body,
            settings=settings,
            logger=logger,
        )
        return created
    else:
        logger.debug(f"Updating {resource!r} {name!r}.")
        updated: bodies.RawBody = await api.put(
            url=resource.get_url(namespace=namespace, name=name),
            payload=_with_resource_version(body, existing),
            settings=settings,
            logger=logger,
        )
        return updated


def _with_resource_version(body: bodies.RawBody, existing: bodies.RawBody) -> bodies.RawBody:
    resource_version = (existing.get('metadata') or {}).get('resourceVersion')
    if resource_version is None:
        return body
    metadata: Mapping[str, Any] = body.get('metadata') or {}
    return cast(bodies.RawBody, dict(body, metadata=dict(metadata, resourceVersion=resource_version)))
