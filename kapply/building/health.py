"""
Health evaluation of the live workloads after their submission.

Every evaluation is a point-in-time snapshot of the live object: it does not
wait for the rollout to progress. The callers re-invoke it with their own
backoffs (see `kapply.running`) until it succeeds or they give up.

The evaluation is split into the pure per-kind classification of an already
fetched object (``evaluate_*``), and the coroutines that re-fetch the live object
by the manifest's identity and classify it (``check_*_health``).
"""
from collections.abc import Iterable, Mapping
from typing import Any

from kapply.clients import fetching
from kapply.helpers import typedefs
from kapply.structs import bodies, configuration, failures, references

PROGRESSING = 'Progressing'
AVAILABLE = 'Available'
REPLICA_FAILURE = 'ReplicaFailure'

WORKLOAD_NOT_PROGRESSING = 'WorkloadNotProgressing'
WORKLOAD_NOT_AVAILABLE = 'WorkloadNotAvailable'
WORKLOAD_BEING_DELETED = 'WorkloadBeingDeleted'


def scan_conditions(
        conditions: Iterable[bodies.RawCondition],
        types: Iterable[str] = (PROGRESSING, AVAILABLE, REPLICA_FAILURE),
) -> dict[str, bodies.RawCondition]:
    """
    Pick the conditions of the interesting types; the last one of a type wins.
    """
    wanted = frozenset(types)
    found: dict[str, bodies.RawCondition] = {}
    for condition in conditions:
        if condition.get('type') in wanted:
            found[condition['type']] = condition
    return found


def evaluate_deployment(
        body: Mapping[str, Any],
        *,
        logger: typedefs.Logger,
) -> None:
    """
    Classify a live deployment: return if healthy, raise if failing.
    """
    iden = bodies.get_identity(body)
    _check_deletion('deployment', body)

    status: Mapping[str, Any] = body.get('status') or {}
    found = scan_conditions(bodies.get_conditions(body))
    progressing = found.get(PROGRESSING)
    available = found.get(AVAILABLE)
    replica_failure = found.get(REPLICA_FAILURE)

    if replica_failure is not None and replica_failure.get('status') == 'True':
        unavailable = status.get('unavailableReplicas', 0)
        raise failures.HealthError(
            f"deployment {iden} has a replica failure "
            f"{replica_failure.get('reason') or ''}: {replica_failure.get('message') or ''}; "
            f"unavailable replicas={unavailable}",
            reason=WORKLOAD_NOT_PROGRESSING,
            name=iden,
            nested=failures.StatusDetails(
                f"deployment {iden} has some pods failing; unavailable replicas={unavailable}"),
        )

    if (available is not None and available.get('status') == 'False' and
            progressing is not None and progressing.get('status') == 'False'):
        replicas = status.get('replicas', 0)
        updated = status.get('updatedReplicas', 0)
        ready = status.get('availableReplicas', 0)
        raise failures.HealthError(
            f"deployment {iden} is not available "
            f"{available.get('reason') or ''} ({available.get('message') or ''}) "
            f"or progressing "
            f"{progressing.get('reason') or ''} ({progressing.get('message') or ''}); "
            f"updated replicas={updated} of {replicas}, available replicas={ready} of {replicas}",
            reason=WORKLOAD_NOT_AVAILABLE,
            name=iden,
            nested=failures.StatusDetails(
                f"deployment {iden} is not available and not progressing; "
                f"updated replicas={updated} of {replicas}, "
                f"available replicas={ready} of {replicas}"),
        )

    if not found:
        logger.warning(f"Deployment {iden} is not setting any expected conditions, "
                       f"and is therefore in an unknown state.")


def evaluate_daemonset(
        body: Mapping[str, Any],
        *,
        logger: typedefs.Logger,
) -> None:
    """
    Classify a live daemonset: return if healthy, raise if failing.

    The DaemonSet controller does not set the status conditions (as of K8s 1.18),
    so only the deletion is considered a failure.
    """
    _check_deletion('daemonset', body)


def _check_deletion(kind: str, body: Mapping[str, Any]) -> None:
    if (body.get('metadata') or {}).get('deletionTimestamp') is not None:
        iden = bodies.get_identity(body)
        raise failures.DeletionError(
            f"{kind} {iden} is being deleted",
            reason=WORKLOAD_BEING_DELETED,
            name=iden,
        )


async def check_deployment_health(
        *,
        body: bodies.RawBody,
        resource: references.Resource = references.DEPLOYMENTS,
        settings: configuration.Settings,
        logger: typedefs.Logger,
) -> None:
    live = await _read_live(resource, body, settings=settings, logger=logger)
    evaluate_deployment(live, logger=logger)


async def check_daemonset_health(
        *,
        body: bodies.RawBody,
        resource: references.Resource = references.DAEMONSETS,
        settings: configuration.Settings,
        logger: typedefs.Logger,
) -> None:
    live = await _read_live(resource, body, settings=settings, logger=logger)
    evaluate_daemonset(live, logger=logger)


async def _read_live(
        resource: references.Resource,
        body: bodies.RawBody,
        *,
        settings: configuration.Settings,
        logger: typedefs.Logger,
) -> bodies.RawBody:
    name = bodies.get_name(body)
    if not name:
        raise ValueError(f"The manifest of {resource!r} has no name.")
    live: bodies.RawBody = await fetching.read_obj(
        resource=resource,
        namespace=bodies.get_namespace(body),
        name=name,
        settings=settings,
        logger=logger,
    )
    return live
