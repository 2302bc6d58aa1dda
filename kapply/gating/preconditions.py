"""
Preconditions of a rollout: independent checks that can block it.

All checks are executed every time, regardless of the failures of other checks:
the operators see all the reasons at once, not one by one on every attempt.
The failures are then reduced into one decision and one combined message.

The decision can be overridden with the ``force`` flag: the failures are still
reported for visibility, but the rollout is not blocked by them.
"""
import dataclasses
from collections.abc import Iterable, Sequence

from typing_extensions import Protocol

from kapply.helpers import typedefs
from kapply.structs import failures

SUMMARY_REASON = 'UpgradePreconditionCheckFailed'
SUMMARY_NAME = 'PreconditionChecks'


class PreconditionError(failures.UpdateError):
    """ A failure of a single precondition check. """


class PreconditionsSummaryError(failures.UpdateError):
    """ A combined failure of all the failed precondition checks. """

    def __init__(
            self,
            message: str,
            *,
            errors: Sequence[BaseException],
    ) -> None:
        super().__init__(
            message,
            reason=SUMMARY_REASON,
            name=SUMMARY_NAME,
            nested=errors[0] if len(errors) == 1 else None,
        )
        self.errors = tuple(errors)


@dataclasses.dataclass(frozen=True)
class ReleaseContext:
    """ What the rollout is going to: the information for the checks. """
    desired_version: str


class Precondition(Protocol):
    """ A single check, e.g. `kapply.gating.featuregates.FeatureGateCheck`. """

    @property
    def name(self) -> str: ...

    async def run(self, release: ReleaseContext) -> None:
        """ Raise a `PreconditionError` if the rollout should not proceed. """


async def run_all(
        preconditions: Iterable[Precondition],
        release: ReleaseContext,
        *,
        logger: typedefs.Logger,
) -> list[Exception | None]:
    """
    Run all the checks in order, and collect their results in the same order.

    A passed check yields ``None``, a failed one yields its exception.
    Arbitrary errors of the checks (e.g. API errors) are collected as the
    failures too; only the cancellations and similar signals are escalated.
    """
    results: list[Exception | None] = []
    for precondition in preconditions:
        try:
            await precondition.run(release)
        except Exception as e:
            logger.warning(f"Precondition {precondition.name!r} failed: {e}", extra=dict(failure=e))
            results.append(e)
        else:
            logger.debug(f"Precondition {precondition.name!r} passed.")
            results.append(None)
    return results


def summarize(
        errors: Iterable[BaseException | None] | None,
        force: bool,
) -> tuple[bool, PreconditionsSummaryError | None]:
    """
    Reduce the results of the checks into a block-or-proceed decision.

    Returns the decision whether to block the rollout, and the combined error
    of all failures (if any). The combined error is returned even if forced:
    only the blocking is overridden, not the visibility of the failures.

    The formatting of the messages is stable and must not change::

        Precondition "FeatureGate" failed because of "NotAllowedFeatureGateSet": ...

    Multiple failures are listed one per line after a header line.
    Mind that the forcing prefix is added only to the single-failure messages:
    the multi-failure messages always begin with the header.
    """
    failed = [error for error in errors or [] if error is not None]
    if not failed:
        return False, None

    block = not force
    msgs = [_format_error(error) for error in failed]
    if len(msgs) == 1:
        msg = f"Forced through blocking failures: {msgs[0]}" if force else msgs[0]
    else:
        msg = "Multiple precondition checks failed:\n* " + "\n* ".join(msgs)
    return block, PreconditionsSummaryError(msg, errors=failed)


def _format_error(error: BaseException) -> str:
    if isinstance(error, failures.UpdateError) and error.name and error.reason:
        return f'Precondition "{error.name}" failed because of "{error.reason}": {error.message}'
    return str(error)
