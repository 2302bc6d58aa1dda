"""
A precondition against the minor rollouts of clusters marked as not upgradeable.

The cluster components can mark the whole cluster as not upgradeable
(via the ``Upgradeable=False`` condition of the cluster version object)
when they know that the next minor version would break them. The patch-level
rollouts within the same minor version are always allowed.
"""
from collections.abc import Mapping
from typing import Any

from kapply.building import health
from kapply.clients import fetching
from kapply.gating import preconditions
from kapply.helpers import typedefs
from kapply.structs import bodies, configuration, references

UPGRADEABLE = 'Upgradeable'


class UpgradeableCheck:
    """ Fail if the cluster is not upgradeable and the rollout changes the minor version. """

    name = 'ClusterVersionUpgradeable'

    def __init__(
            self,
            *,
            settings: configuration.Settings,
            logger: typedefs.Logger,
    ) -> None:
        super().__init__()
        self._settings = settings
        self._logger = logger

    async def run(self, release: preconditions.ReleaseContext) -> None:
        clusterversion = await fetching.read_obj(
            resource=references.CLUSTERVERSIONS,
            namespace=None,
            name=self._settings.gating.clusterversion_name,
            default=None,
            settings=self._settings,
            logger=self._logger,
        )

        # No cluster version object means nothing is installed yet: nothing to break.
        if clusterversion is None:
            return

        found = health.scan_conditions(bodies.get_conditions(clusterversion), [UPGRADEABLE])
        condition = found.get(UPGRADEABLE)
        if condition is None or condition.get('status') != 'False':
            return

        status: Mapping[str, Any] = clusterversion.get('status') or {}
        current: str = (status.get('desired') or {}).get('version') or ''
        if is_minor_update(current, release.desired_version):
            raise preconditions.PreconditionError(
                condition.get('message') or "The cluster is not upgradeable.",
                reason=condition.get('reason') or 'NotUpgradeable',
                name=self.name,
            )
        else:
            self._logger.info(f"The cluster is not upgradeable, but the update from "
                              f"{current!r} to {release.desired_version!r} is a patch-level one.")


def is_minor_update(current: str, desired: str) -> bool:
    """
    Check if the desired version differs from the current one in major/minor parts.

    Unparseable or unknown versions are treated as minor updates:
    it is safer to block the rollouts that cannot be classified.
    """
    try:
        current_major, current_minor = _parse_major_minor(current)
        desired_major, desired_minor = _parse_major_minor(desired)
    except ValueError:
        return True
    return (current_major, current_minor) != (desired_major, desired_minor)


def _parse_major_minor(version: str) -> tuple[int, int]:
    major, minor, *_ = version.lstrip('v').split('.') + ['']
    return int(major), int(minor)
