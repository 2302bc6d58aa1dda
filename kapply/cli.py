import asyncio
import functools
import sys
from collections.abc import Callable
from typing import Any

import aiohttp
import click

from kapply import running
from kapply.building import builders
from kapply.clients import errors
from kapply.engines import loggers
from kapply.helpers import loaders, versions
from kapply.structs import credentials, failures


class LogFormatParamType(click.Choice):

    def __init__(self) -> None:
        super().__init__(choices=[v.name.lower() for v in loggers.LogFormat])

    def convert(self, value: Any, param: Any, ctx: Any) -> loggers.LogFormat:
        if isinstance(value, loggers.LogFormat):
            return value
        name: str = super().convert(value, param, ctx)
        return loggers.LogFormat[name.upper()]


class BuilderModeParamType(click.Choice):

    def __init__(self) -> None:
        super().__init__(choices=[v.name.lower() for v in builders.BuilderMode])

    def convert(self, value: Any, param: Any, ctx: Any) -> builders.BuilderMode:
        if isinstance(value, builders.BuilderMode):
            return value
        name: str = super().convert(value, param, ctx)
        return builders.BuilderMode[name.upper()]


def logging_options(fn: Callable[..., Any]) -> Callable[..., Any]:
    """ A decorator to configure logging in all commands the same way."""
    @click.option('-v', '--verbose', is_flag=True)
    @click.option('-d', '--debug', is_flag=True)
    @click.option('-q', '--quiet', is_flag=True)
    @click.option('--log-format', type=LogFormatParamType(), default='full')
    @click.option('--log-refkey', type=str)
    @click.option('--log-prefix/--no-log-prefix', default=None)
    @functools.wraps(fn)  # to preserve other opts/args
    def wrapper(verbose: bool, quiet: bool, debug: bool,
                log_format: loggers.LogFormat = loggers.LogFormat.FULL,
                log_prefix: bool | None = False,
                log_refkey: str | None = None,
                *args: Any, **kwargs: Any) -> Any:
        loggers.configure(debug=debug, verbose=verbose, quiet=quiet,
                          log_format=log_format, log_refkey=log_refkey, log_prefix=log_prefix)
        return fn(*args, **kwargs)

    return wrapper


def failure_reporting(fn: Callable[..., Any]) -> Callable[..., Any]:
    """ Convert the known failures to the CLI errors with a non-zero exit code. """
    @functools.wraps(fn)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return fn(*args, **kwargs)
        except failures.UpdateError as e:
            raise click.ClickException(f"{e.reason}: {e}") from e
        except errors.APIError as e:
            raise click.ClickException(f"API error {e.status}: {e.message or 'no details'}") from e
        except (credentials.LoginError, loaders.ManifestError, builders.UnsupportedKindError) as e:
            raise click.ClickException(str(e)) from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise click.ClickException(f"Cannot reach the API server: {e!r}") from e

    return wrapper


@click.version_option(prog_name='kapply', version=versions.version or 'unknown')
@click.group(name='kapply', context_settings=dict(
    auto_envvar_prefix='KAPPLY',
))
def main() -> None:
    pass


@main.command()
@logging_options
@click.option('-m', '--mode', type=BuilderModeParamType(), default='applying')
@click.option('--wait/--no-wait', default=True)
@click.argument('paths', nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@failure_reporting
def apply(
        paths: list[str],
        mode: builders.BuilderMode,
        wait: bool,
) -> None:
    """ Apply the manifests from the files in order, one at a time. """
    running.run_apply(paths, mode=mode, wait=wait)


@main.command()
@logging_options
@click.option('--force', is_flag=True)
@click.option('--desired-version', type=str, default='')
@failure_reporting
def check(
        force: bool,
        desired_version: str,
) -> None:
    """ Run the rollout preconditions and report the failures. """
    block, error = running.run_check(desired_version=desired_version, force=force)
    if error is None:
        click.echo("All preconditions passed.")
    else:
        click.echo(str(error))
    if block:
        sys.exit(1)
