import json
import logging
import re
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from kapply.clients.auth import APIContext, context_var
from kapply.clients.errors import APINotFoundError
from kapply.structs.configuration import Settings
from kapply.structs.references import Resource


def pytest_configure(config):
    config.addinivalue_line('markers', "resource_clustered: for a cluster-scoped resource fixture.")


@pytest.fixture()
def settings():
    settings = Settings()
    settings.networking.error_backoffs = []  # no retries unless explicitly tested
    settings.polling.backoffs = [0, 0, 0]
    return settings


@pytest.fixture()
def resource(request):
    """ An arbitrary resource, either namespaced or cluster-scoped (via a mark). """
    namespaced = request.node.get_closest_marker('resource_clustered') is None
    return Resource('kapply.dev', 'v1', 'kapplyexamples', kind='KapplyExample', namespaced=namespaced)


@pytest.fixture()
def namespace(resource):
    return 'ns' if resource.namespaced else None


@pytest.fixture()
def logger():
    return logging.getLogger('kapply.tests')


#
# Mocks for Kubernetes API clients. Reasons:
# 1. We do not test aiohttp, we test the layers on top of it,
#    so everything low-level should be mocked and assumed to be functional.
# 2. No external calls must be made under any circumstances.
#    The unit-tests must be fully isolated from the environment.
#

@pytest.fixture()
def hostname():
    """ A fake hostname to be used in all aiohttp/aresponses tests. """
    return 'fake-host'


@pytest.fixture()
async def api_session(aresponses):
    async with aiohttp.ClientSession() as session:
        yield session


@pytest.fixture()
def api_context(api_session, hostname):
    """
    A current API context with a session served by `aresponses`.

    It is set synchronously, so that the tests' tasks inherit it
    the same way as the real code inherits it from `kapply.clients.auth.connected`.
    """
    context = APIContext(api_session, server=f'http://{hostname}')
    token = context_var.set(context)
    try:
        yield context
    finally:
        context_var.reset(token)


# Note: Unused `api_context` is to ensure that the client wrappers have the session.
@pytest.fixture()
def resp_mocker(api_context, aresponses):
    """
    A factory of server-side callbacks for `aresponses` with mocking/spying.

    The value of the fixture is a function, which return a coroutine mock.
    That coroutine mock should be passed to `aresponses.add` as a response
    callback function. When called, it calls the mock defined by the function's
    arguments (specifically, return_value or side_effects).

    The difference from passing the responses directly to `aresponses.add`
    is that it is possible to assert on whether the response was handled
    by that callback at all (i.e. HTTP URL & method matched), especially
    if there are multiple responses registered.

    The request's payload is stored in the request as ``request['data']``.

    Sample usage::

        def test_me(resp_mocker):
            response = aiohttp.web.json_response({'a': 'b'})
            callback = resp_mocker(return_value=response)
            aresponses.add(hostname, '/path/', 'get', callback)
            do_something()
            assert callback.called
            assert callback.call_count == 1
    """
    def resp_maker(*args, **kwargs):
        actual_response = MagicMock(*args, **kwargs)
        async def resp_mock_effect(request):
            nonlocal actual_response

            # The request's content can be read inside of the handler only. We preserve
            # the data into the request's storage, so that they could be asserted later.
            text = await request.text()
            try:
                request['data'] = json.loads(text) if text else None
            except json.JSONDecodeError:
                request['data'] = text

            # Get a response/error as it was intended (via return_value/side_effect).
            response = actual_response()
            return response

        return AsyncMock(side_effect=resp_mock_effect)
    return resp_maker


#
# Fakes of the API-level operations, for the layers above the API client.
#

@pytest.fixture()
def cluster():
    """
    The live objects as seen via the API: ``{(plural, namespace, name): body}``.

    Exceptions as the values are raised when the objects are read.
    """
    return {}


@pytest.fixture()
def read_obj(mocker, cluster):
    """ A fake reader of the `cluster` objects, with all the calls recorded. """
    async def read_obj_effect(*, resource, namespace, name, **kwargs):
        key = (resource.plural, namespace, name)
        if key not in cluster:
            if 'default' in kwargs:
                return kwargs['default']
            raise APINotFoundError(None, status=404)
        value = cluster[key]
        if isinstance(value, BaseException):
            raise value
        return value

    return mocker.patch('kapply.clients.fetching.read_obj', side_effect=read_obj_effect)


@pytest.fixture()
def create_or_update(mocker, cluster):
    """
    A fake submitter, which stores the submitted bodies into the `cluster`.

    As with the real API, the status of the existing objects is preserved.
    """
    async def create_or_update_effect(*, resource, body, **_):
        key = (resource.plural, body.get('metadata', {}).get('namespace'),
               body.get('metadata', {}).get('name'))
        live = dict(body)
        existing = cluster.get(key)
        if isinstance(existing, dict) and 'status' in existing:
            live['status'] = existing['status']
        cluster[key] = live
        return live

    return mocker.patch('kapply.clients.applying.create_or_update',
                        side_effect=create_or_update_effect)


#
# Helpers for the logging checks.
#

@pytest.fixture()
def assert_logs(caplog):
    """
    A function to assert the logs are present (by pattern).

    The listed message patterns MUST be present, in the order specified.
    Some other log messages can also be present, but they are ignored.
    """
    def assert_logs_fn(patterns, prohibited=[], strict=False):
        __traceback_hide__ = True
        remaining_patterns = list(patterns)
        for message in caplog.messages:
            # The expected pattern is at position 0.
            # Looking-ahead: if one of the following patterns matches, while the
            # 0th does not, then the log message is missing, and we fail the test.
            for idx, pattern in enumerate(remaining_patterns):
                m = re.search(pattern, message)
                if m:
                    if idx == 0:
                        remaining_patterns[:1] = []
                        break  # out of `remaining_patterns` cycle
                    else:
                        skipped_patterns = remaining_patterns[:idx]
                        raise AssertionError(f"Few patterns were skipped: {skipped_patterns!r}")
                elif strict:
                    raise AssertionError(f"Unexpected log message: {message!r}")

            # Check that the prohibited patterns do not appear in any message.
            for pattern in prohibited:
                m = re.search(pattern, message)
                if m:
                    raise AssertionError(f"Prohibited log pattern found: {message!r} ~ {pattern!r}")

        # If all patterns have been matched in order, we are done.
        # if some are left, but the messages are over, then we fail.
        if remaining_patterns:
            raise AssertionError(f"Few patterns were missed: {remaining_patterns!r}")

    return assert_logs_fn
