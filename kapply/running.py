"""
A minimal sequential driver of the builders and the preconditions.

The outer controllers decide which manifests to apply and in which order;
this driver only applies them in the given order, one at a time, and stops
at the first failure. It is what the CLI uses, and what the tests use
as an example of the builders' and preconditions' intended usage.

Unlike the builders, the driver re-checks the unhealthy workloads until they
become healthy or until the configured backoffs are exhausted.
"""
import asyncio
import logging
from collections.abc import Iterable, Sequence

from kapply.building import builders
from kapply.clients import auth, login
from kapply.gating import featuregates, preconditions, upgradeable
from kapply.helpers import loaders, typedefs
from kapply.structs import bodies, configuration, credentials, failures

logger = logging.getLogger(__name__)


def run_apply(
        paths: Iterable[str],
        *,
        mode: builders.BuilderMode = builders.BuilderMode.APPLYING,
        wait: bool = True,
        settings: configuration.Settings | None = None,
        info: credentials.ConnectionInfo | None = None,
) -> None:
    """ Load the manifests from the files and apply them in a new event loop. """
    manifests = loaders.load_manifests(paths)
    settings = settings if settings is not None else configuration.Settings()
    info = info if info is not None else login.login(logger=logger)
    asyncio.run(_connected_apply(manifests, mode=mode, wait=wait, settings=settings, info=info))


def run_check(
        *,
        desired_version: str,
        force: bool = False,
        settings: configuration.Settings | None = None,
        info: credentials.ConnectionInfo | None = None,
) -> tuple[bool, preconditions.PreconditionsSummaryError | None]:
    """ Run the built-in preconditions in a new event loop and summarize them. """
    settings = settings if settings is not None else configuration.Settings()
    info = info if info is not None else login.login(logger=logger)
    release = preconditions.ReleaseContext(desired_version=desired_version)
    return asyncio.run(_connected_check(release, force=force, settings=settings, info=info))


async def _connected_apply(
        manifests: Sequence[bodies.RawBody],
        *,
        mode: builders.BuilderMode,
        wait: bool,
        settings: configuration.Settings,
        info: credentials.ConnectionInfo,
) -> None:
    async with auth.connected(info):
        builder = builders.Builder(mode=mode, settings=settings)
        await apply_payload(manifests, builder=builder, settings=settings, wait=wait)


async def _connected_check(
        release: preconditions.ReleaseContext,
        *,
        force: bool,
        settings: configuration.Settings,
        info: credentials.ConnectionInfo,
) -> tuple[bool, preconditions.PreconditionsSummaryError | None]:
    async with auth.connected(info):
        checks = make_default_preconditions(settings=settings, logger=logger)
        return await check_preconditions(checks, release, force=force)


async def apply_payload(
        manifests: Iterable[bodies.RawBody],
        *,
        builder: builders.Builder,
        settings: configuration.Settings,
        wait: bool = True,
) -> None:
    """
    Apply the manifests one by one; stop and escalate on the first failure.

    If waiting is enabled, the unhealthy workloads are re-checked with backoffs.
    Other failures (API errors, deletions) are escalated immediately.
    """
    for manifest in manifests:
        try:
            await builder.apply(manifest)
        except failures.HealthError as e:
            if not wait:
                raise
            await wait_for_health(manifest, builder=builder, settings=settings, error=e)


async def wait_for_health(
        manifest: bodies.RawBody,
        *,
        builder: builders.Builder,
        settings: configuration.Settings,
        error: failures.HealthError | None = None,
) -> None:
    """
    Re-check an applied manifest until it is healthy or the backoffs are exhausted.

    The last health failure is escalated if the workload never becomes healthy.
    """
    for backoff in settings.polling.backoffs:
        if error is not None:
            logger.info(f"{error}; re-checking in {backoff}s.", extra=dict(failure=error))
        await asyncio.sleep(backoff)
        try:
            await builder.check_health(manifest)
        except failures.HealthError as e:
            error = e
        else:
            return
    if error is not None:
        raise error


async def check_preconditions(
        checks: Iterable[preconditions.Precondition],
        release: preconditions.ReleaseContext,
        *,
        force: bool = False,
) -> tuple[bool, preconditions.PreconditionsSummaryError | None]:
    results = await preconditions.run_all(checks, release, logger=logger)
    block, error = preconditions.summarize(results, force=force)
    if error is not None and block:
        logger.error(f"The rollout is blocked: {error}", extra=dict(failure=error))
    elif error is not None:
        logger.warning(f"{error}", extra=dict(failure=error))
    return block, error


def make_default_preconditions(
        *,
        settings: configuration.Settings,
        logger: typedefs.Logger,
) -> list[preconditions.Precondition]:
    return [
        upgradeable.UpgradeableCheck(settings=settings, logger=logger),
        featuregates.FeatureGateCheck(settings=settings, logger=logger),
    ]
