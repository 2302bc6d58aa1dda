"""
All the structures coming from/to the Kubernetes API.

The usage of these classes is spread over the codebase, so they are extracted
into a separate module of such type definitions.

For strict type-checking, they are detailed to the per-field level
(e.g. `TypedDict` instead of just ``Mapping[Any, Any]``) --
as used by the builders and the health checks. The manifests can contain
arbitrary fields at runtime, which are not declared here at type-checking time,
and which are passed to the API as is.

Everything marked "raw" is a plain unwrapped unprocessed data as JSON-decoded
from the Kubernetes API or YAML-decoded from the manifest files.
"""
from collections.abc import Mapping, MutableMapping, MutableSequence
from typing import Any, cast

from typing_extensions import Literal, TypedDict

from kapply.structs import references

Labels = Mapping[str, str]
Annotations = Mapping[str, str]

ConditionStatus = Literal['True', 'False', 'Unknown']


class RawMeta(TypedDict, total=False):
    uid: str
    name: str
    namespace: str
    labels: Labels
    annotations: Annotations
    resourceVersion: str
    deletionTimestamp: str
    creationTimestamp: str


class RawBody(TypedDict, total=False):
    apiVersion: str
    kind: str
    metadata: RawMeta
    spec: Mapping[str, Any]
    status: Mapping[str, Any]


class RawCondition(TypedDict, total=False):
    type: str
    status: ConditionStatus
    reason: str
    message: str
    lastTransitionTime: str


class RawEnvVar(TypedDict, total=False):
    name: str
    value: str
    valueFrom: Mapping[str, Any]


class RawContainer(TypedDict, total=False):
    name: str
    image: str
    env: MutableSequence[RawEnvVar]


# Only the fields touched by the mutators. All others are preserved as is.
class RawPodSpec(TypedDict, total=False):
    containers: MutableSequence[RawContainer]
    initContainers: MutableSequence[RawContainer]


def get_name(body: Mapping[str, Any]) -> str | None:
    return cast(str | None, (body.get('metadata') or {}).get('name'))


def get_namespace(body: Mapping[str, Any]) -> references.Namespace:
    return cast(references.Namespace, (body.get('metadata') or {}).get('namespace'))


def get_annotations(body: Mapping[str, Any]) -> Annotations:
    return cast(Annotations, (body.get('metadata') or {}).get('annotations') or {})


def get_identity(body: Mapping[str, Any]) -> str:
    """
    A human-readable identity of an object: ``namespace/name`` or just ``name``.

    It is used in the messages of the structured errors and in the logs.
    """
    namespace = get_namespace(body)
    name = get_name(body)
    return f'{namespace}/{name}' if namespace else f'{name}'


def get_conditions(body: Mapping[str, Any]) -> list[RawCondition]:
    return list((body.get('status') or {}).get('conditions') or [])


def ensure_podspec(body: MutableMapping[str, Any]) -> RawPodSpec:
    """
    Get the pod template's spec of a workload, creating the missing parents.

    The returned dict is the live part of the body: its changes are the body's changes.
    """
    spec = body.setdefault('spec', {})
    template = spec.setdefault('template', {})
    return cast(RawPodSpec, template.setdefault('spec', {}))
