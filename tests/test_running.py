import asyncio

import pytest

from kapply.building.builders import Builder, BuilderMode
from kapply.gating.featuregates import FeatureGateCheck
from kapply.gating.preconditions import PreconditionsSummaryError, ReleaseContext
from kapply.gating.upgradeable import UpgradeableCheck
from kapply.running import apply_payload, check_preconditions, make_default_preconditions, \
                           run_apply, run_check, wait_for_health
from kapply.structs.credentials import ConnectionInfo
from kapply.structs.failures import DeletionError, HealthError

UNHEALTHY = {'conditions': [{'type': 'Available', 'status': 'False'},
                            {'type': 'Progressing', 'status': 'False'}]}
HEALTHY = {'conditions': [{'type': 'Available', 'status': 'True'}]}


def make_deployment(name):
    return {'apiVersion': 'apps/v1', 'kind': 'Deployment',
            'metadata': {'name': name, 'namespace': 'ns1'}}


@pytest.fixture(autouse=True)
def _caplog_all_levels(caplog):
    caplog.set_level(0)


@pytest.fixture()
def sleep(mocker):
    return mocker.patch('asyncio.sleep')


@pytest.fixture()
def builder(settings, logger):
    return Builder(mode=BuilderMode.APPLYING, settings=settings, logger=logger)


async def test_manifests_are_applied_in_order(builder, settings, read_obj, create_or_update):
    manifests = [make_deployment('d1'), make_deployment('d2'), make_deployment('d3')]

    await apply_payload(manifests, builder=builder, settings=settings)

    names = [call[1]['body']['metadata']['name'] for call in create_or_update.call_args_list]
    assert names == ['d1', 'd2', 'd3']


async def test_application_stops_at_the_first_failure(
        builder, settings, cluster, read_obj, create_or_update, sleep):
    cluster[('deployments', 'ns1', 'd2')] = dict(make_deployment('d2'), status=UNHEALTHY)
    manifests = [make_deployment('d1'), make_deployment('d2'), make_deployment('d3')]

    with pytest.raises(HealthError):
        await apply_payload(manifests, builder=builder, settings=settings, wait=False)

    names = [call[1]['body']['metadata']['name'] for call in create_or_update.call_args_list]
    assert names == ['d1', 'd2']
    assert not sleep.called


async def test_unhealthy_workloads_are_rechecked_until_healthy(
        builder, settings, cluster, read_obj, create_or_update, sleep, caplog):
    key = ('deployments', 'ns1', 'd1')
    cluster[key] = dict(make_deployment('d1'), status=UNHEALTHY)

    async def heal(delay):
        cluster[key] = dict(cluster[key], status=HEALTHY)

    sleep.side_effect = heal
    await apply_payload([make_deployment('d1')], builder=builder, settings=settings, wait=True)

    assert sleep.call_count == 1
    assert read_obj.call_count == 2  # the apply's check + one re-check

    rechecks = [r for r in caplog.records if 're-checking' in r.getMessage()]
    assert len(rechecks) == 1
    assert isinstance(rechecks[0].failure, HealthError)


async def test_unhealthy_workloads_fail_when_backoffs_are_exhausted(
        builder, settings, cluster, read_obj, create_or_update, sleep):
    settings.polling.backoffs = [1, 2, 3]
    cluster[('deployments', 'ns1', 'd1')] = dict(make_deployment('d1'), status=UNHEALTHY)

    with pytest.raises(HealthError):
        await apply_payload([make_deployment('d1')], builder=builder, settings=settings, wait=True)

    assert [call[0][0] for call in sleep.call_args_list] == [1, 2, 3]
    assert read_obj.call_count == 4


async def test_deletions_are_not_rechecked(
        builder, settings, cluster, read_obj, create_or_update, sleep):
    live = make_deployment('d1')
    live['metadata']['deletionTimestamp'] = '2020-12-31T23:59:59Z'
    cluster[('deployments', 'ns1', 'd1')] = live
    create_or_update.side_effect = None  # keep the live object as is

    with pytest.raises(DeletionError):
        await apply_payload([make_deployment('d1')], builder=builder, settings=settings, wait=True)

    assert not sleep.called


async def test_waiting_without_backoffs_returns_immediately(builder, settings, sleep):
    settings.polling.backoffs = []
    await wait_for_health(make_deployment('d1'), builder=builder, settings=settings)
    assert not sleep.called


async def test_waiting_is_cancellable(builder, settings, cluster, read_obj, sleep):
    cluster[('deployments', 'ns1', 'd1')] = dict(make_deployment('d1'), status=UNHEALTHY)
    sleep.side_effect = asyncio.CancelledError()
    with pytest.raises(asyncio.CancelledError):
        await wait_for_health(make_deployment('d1'), builder=builder, settings=settings)


def test_default_preconditions(settings, logger):
    checks = make_default_preconditions(settings=settings, logger=logger)
    assert [type(check) for check in checks] == [UpgradeableCheck, FeatureGateCheck]


async def test_preconditions_pass(settings, logger, read_obj):
    checks = make_default_preconditions(settings=settings, logger=logger)
    block, error = await check_preconditions(checks, ReleaseContext(desired_version='4.6.0'))
    assert block is False
    assert error is None


@pytest.mark.parametrize('force, expected_block', [(False, True), (True, False)])
async def test_preconditions_fail(
        settings, logger, cluster, read_obj, caplog, force, expected_block):
    cluster[('featuregates', None, 'cluster')] = {'spec': {'featureSet': 'X'}}
    cluster[('clusterversions', None, 'version')] = {'status': {
        'desired': {'version': '4.5.3'},
        'conditions': [{'type': 'Upgradeable', 'status': 'False',
                        'reason': 'R', 'message': 'M'}],
    }}
    checks = make_default_preconditions(settings=settings, logger=logger)

    block, error = await check_preconditions(checks, ReleaseContext(desired_version='4.6.0'),
                                             force=force)

    assert block is expected_block
    assert isinstance(error, PreconditionsSummaryError)
    assert str(error).splitlines() == [
        'Multiple precondition checks failed:',
        '* Precondition "ClusterVersionUpgradeable" failed because of "R": M',
        '* Precondition "FeatureGate" failed because of "NotAllowedFeatureGateSet": '
        'Feature Gate X is set for the cluster. This Feature Gate turns on features '
        'that are not part of the normal supported platform.',
    ]

    records = [r for r in caplog.records if getattr(r, 'failure', None) is error]
    assert len(records) == 1
    assert records[0].levelname == ('ERROR' if expected_block else 'WARNING')


#
# The synchronous entry points, as used by the CLI.
#

INFO = ConnectionInfo(server='https://fake-host')
NAMESPACE_YAML = """
apiVersion: v1
kind: Namespace
metadata:
  name: ns1
"""


def test_run_apply_loads_and_applies(tmp_path, settings, read_obj, create_or_update):
    path = tmp_path / 'm.yaml'
    path.write_text(NAMESPACE_YAML)

    run_apply([str(path)], mode=BuilderMode.INITIALIZING, wait=False, settings=settings, info=INFO)

    assert create_or_update.call_count == 1
    assert create_or_update.call_args[1]['body'] == {'apiVersion': 'v1', 'kind': 'Namespace',
                                                     'metadata': {'name': 'ns1'}}


def test_run_apply_logs_in_if_needed(mocker, tmp_path, settings, read_obj, create_or_update):
    login = mocker.patch('kapply.clients.login.login', return_value=INFO)
    path = tmp_path / 'm.yaml'
    path.write_text(NAMESPACE_YAML)

    run_apply([str(path)], settings=settings)

    assert login.call_count == 1
    assert create_or_update.call_count == 1


def test_run_check_connects_and_summarizes(settings, read_obj):
    block, error = run_check(desired_version='4.6.0', settings=settings, info=INFO)
    assert block is False
    assert error is None
    assert read_obj.call_count == 2
