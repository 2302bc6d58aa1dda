import asyncio

import aiohttp
import pytest

from kapply.building.builders import BuilderMode, UnsupportedKindError
from kapply.clients.errors import APIForbiddenError
from kapply.helpers.loaders import ManifestError
from kapply.structs.credentials import ConnectionInfo, LoginError
from kapply.structs.failures import DeletionError, HealthError


def test_defaults(invoke, real_apply):
    result = invoke(['apply', 'manifests.yaml'])
    assert result.exit_code == 0
    assert real_apply.call_count == 1
    assert real_apply.call_args[0][0] == ('manifests.yaml',)
    assert real_apply.call_args[1]['mode'] is BuilderMode.APPLYING
    assert real_apply.call_args[1]['wait'] is True


@pytest.mark.parametrize('options, envvars, expected_mode, expected_wait', [
    (['--mode', 'initializing'], {}, BuilderMode.INITIALIZING, True),
    (['-m', 'applying'], {}, BuilderMode.APPLYING, True),
    (['--no-wait'], {}, BuilderMode.APPLYING, False),
    (['--wait'], {}, BuilderMode.APPLYING, True),
    ([], {'KAPPLY_APPLY_MODE': 'initializing'}, BuilderMode.INITIALIZING, True),
    ([], {'KAPPLY_APPLY_WAIT': 'false'}, BuilderMode.APPLYING, False),
], ids=['opt-mode', 'opt-m', 'opt-no-wait', 'opt-wait', 'env-mode', 'env-wait'])
def test_options(invoke, real_apply, options, envvars, expected_mode, expected_wait):
    result = invoke(['apply'] + options + ['manifests.yaml'], env=envvars)
    assert result.exit_code == 0
    assert real_apply.call_args[1]['mode'] is expected_mode
    assert real_apply.call_args[1]['wait'] is expected_wait


def test_multiple_paths_in_order(invoke, real_apply, srcdir):
    (srcdir / 'other.yaml').write_text('')
    result = invoke(['apply', 'other.yaml', 'manifests.yaml'])
    assert result.exit_code == 0
    assert real_apply.call_args[0][0] == ('other.yaml', 'manifests.yaml')


def test_paths_are_required(invoke, real_apply):
    result = invoke(['apply'])
    assert result.exit_code == 2
    assert not real_apply.called


def test_absent_paths_fail(invoke, real_apply):
    result = invoke(['apply', 'absent.yaml'])
    assert result.exit_code == 2
    assert not real_apply.called


def test_unknown_modes_fail(invoke, real_apply):
    result = invoke(['apply', '--mode', 'whatever', 'manifests.yaml'])
    assert result.exit_code == 2
    assert not real_apply.called


@pytest.mark.parametrize('error, expected_output', [
    (HealthError("d1 is not available", reason='WorkloadNotAvailable', name='ns1/d1'),
     "Error: WorkloadNotAvailable: d1 is not available"),
    (DeletionError("d1 is being deleted", reason='WorkloadBeingDeleted', name='ns1/d1'),
     "Error: WorkloadBeingDeleted: d1 is being deleted"),
    (APIForbiddenError({'message': 'forbidden!'}, status=403),
     "Error: API error 403: forbidden!"),
    (LoginError("no credentials"),
     "Error: no credentials"),
    (ManifestError("not an object"),
     "Error: not an object"),
    (UnsupportedKindError("Unsupported manifest kind: 'StatefulSet' of 'apps/v1'"),
     "Error: Unsupported manifest kind: 'StatefulSet' of 'apps/v1'"),
    (aiohttp.ClientConnectionError("refused"),
     "Error: Cannot reach the API server: ClientConnectionError('refused')"),
    (asyncio.TimeoutError(),
     "Error: Cannot reach the API server: TimeoutError()"),
])
def test_failures_are_reported(invoke, real_apply, error, expected_output):
    real_apply.side_effect = error
    result = invoke(['apply', 'manifests.yaml'])
    assert result.exit_code == 1
    assert expected_output in result.output


def test_unexpected_errors_are_escalated(invoke, real_apply):
    real_apply.side_effect = RuntimeError("boom")
    result = invoke(['apply', 'manifests.yaml'])
    assert result.exit_code == 1
    assert isinstance(result.exception, RuntimeError)


def test_unsupported_kinds_in_files_are_reported(mocker, invoke, srcdir):
    mocker.patch('kapply.clients.login.login', return_value=ConnectionInfo(server='https://fake-host'))
    (srcdir / 'sts.yaml').write_text('apiVersion: apps/v1\nkind: StatefulSet\nmetadata: {name: s1}\n')
    result = invoke(['apply', 'sts.yaml'])
    assert result.exit_code == 1
    assert "Error: Unsupported manifest kind: 'StatefulSet' of 'apps/v1'" in result.output
