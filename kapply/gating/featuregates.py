"""
A precondition against the rollouts of clusters with non-default feature sets.

Some feature sets turn on the features that are not part of the normal supported
platform; such clusters cannot be updated in a supported way. The default
feature set (an empty ``spec.featureSet``) passes the check.
"""
from kapply.clients import fetching
from kapply.gating import preconditions
from kapply.helpers import typedefs
from kapply.structs import configuration, references

NOT_ALLOWED_FEATURE_GATE_SET = 'NotAllowedFeatureGateSet'


class FeatureGateCheck:
    """ Fail if a non-default feature set is configured for the cluster. """

    name = 'FeatureGate'

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
        featuregate = await fetching.read_obj(
            resource=references.FEATUREGATES,
            namespace=None,
            name=self._settings.gating.featuregate_name,
            default=None,
            settings=self._settings,
            logger=self._logger,
        )

        # No feature gates object means the default feature set.
        if featuregate is None:
            return

        feature_set: str = (featuregate.get('spec') or {}).get('featureSet') or ''
        if feature_set:
            raise preconditions.PreconditionError(
                f"Feature Gate {feature_set} is set for the cluster. "
                f"This Feature Gate turns on features that are not part "
                f"of the normal supported platform.",
                reason=NOT_ALLOWED_FEATURE_GATE_SET,
                name=self.name,
            )
