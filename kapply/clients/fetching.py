from typing import TypeVar

from kapply.clients import api, errors
from kapply.helpers import typedefs
from kapply.structs import bodies, configuration, references

_T = TypeVar('_T')


class _Unset:
    pass


_UNSET = _Unset()


async def read_obj(
        *,
        settings: configuration.Settings,
        resource: references.Resource,
        namespace: references.Namespace,
        name: str,
        default: _T | _Unset = _UNSET,
        logger: typedefs.Logger,
) -> bodies.RawBody | _T:
    """
    Read one specific object by its name: a fresh, possibly stale, snapshot.

    If the object is absent (HTTP 404) and the default is provided,
    the default is returned; otherwise, the API error is escalated.
    All other API errors are escalated regardless of the default.
    """
    try:
        obj: bodies.RawBody = await api.get(
            url=resource.get_url(namespace=namespace, name=name),
            settings=settings,
            logger=logger,
        )
    except errors.APINotFoundError:
        if not isinstance(default, _Unset):
            return default
        raise
    return obj
