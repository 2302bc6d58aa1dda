import functools
import logging

import click.testing
import pytest

from kapply.cli import main

MANIFESTS = """
apiVersion: v1
kind: Namespace
metadata:
  name: ns1
---
apiVersion: apps/v1
kind: Deployment
metadata:
  name: d1
  namespace: ns1
"""


@pytest.fixture(autouse=True)
def srcdir(tmp_path, monkeypatch):
    (tmp_path / 'manifests.yaml').write_text(MANIFESTS)
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture(autouse=True)
def _restore_root_logger():
    logger = logging.getLogger()
    handlers = logger.handlers[:]
    level = logger.level
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)


@pytest.fixture()
def runner():
    runner = click.testing.CliRunner()
    return runner


@pytest.fixture()
def invoke(runner):
    return functools.partial(runner.invoke, main)


@pytest.fixture()
def real_apply(mocker):
    return mocker.patch('kapply.running.run_apply')


@pytest.fixture()
def real_check(mocker):
    return mocker.patch('kapply.running.run_check', return_value=(False, None))
