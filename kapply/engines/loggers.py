"""
Logging on behalf of the manifests and their failures, and its formatting.

The builders log via `ObjectLogger`: every record carries a reference
to the manifest's object in ``k8s_ref``. The driver attaches the structured
failures to its records as ``failure`` (via ``extra=``).

In the text logs, the object references become the message prefixes,
e.g. ``[ns1/name1] Submitting...``, and the failures are rendered only by
their messages. In the JSON logs, both go to separate fields for log parsers:
the object under the configurable reference key, the failure under ``failure``.
"""
import enum
import logging
from collections.abc import Mapping, MutableMapping
from typing import Any

# Luckily, we do not mock these ones in tests, so we can import them into our namespace.
try:
    # python-json-logger>=3.1.0
    from pythonjsonlogger.core import RESERVED_ATTRS as _pjl_RESERVED_ATTRS
    from pythonjsonlogger.json import JsonFormatter as _pjl_JsonFormatter
except ImportError:
    # python-json-logger<3.1.0
    from pythonjsonlogger.jsonlogger import JsonFormatter as _pjl_JsonFormatter  # type: ignore
    from pythonjsonlogger.jsonlogger import RESERVED_ATTRS as _pjl_RESERVED_ATTRS  # type: ignore

from kapply.helpers import typedefs
from kapply.structs import failures

logger = logging.getLogger('kapply.objects')

DEFAULT_JSON_REFKEY = 'object'

# The upper bounds of the levels, as understood by the usual log collectors.
SEVERITIES = [
    (logging.DEBUG, 'debug'),
    (logging.INFO, 'info'),
    (logging.WARNING, 'warn'),
    (logging.ERROR, 'error'),
]


class LogFormat(enum.Enum):
    """ Log formats, as specified on CLI. """
    PLAIN = '%(message)s'
    FULL = '[%(asctime)s] %(name)-20.20s [%(levelname)-8.8s] %(message)s'
    JSON = '-json-'  # not used for formatting, only for detection


def get_prefix(record: logging.LogRecord) -> str | None:
    ref: Mapping[str, Any] | None = getattr(record, 'k8s_ref', None)
    if not ref:
        return None
    namespace = ref.get('namespace')
    name = ref.get('name')
    return f"[{namespace}/{name}]" if namespace else f"[{name}]"


def get_failure(record: logging.LogRecord) -> failures.UpdateError | None:
    """ The failure as attached explicitly, or as logged with ``exc_info``. """
    failure = getattr(record, 'failure', None)
    if failure is None and record.exc_info:
        failure = record.exc_info[1]
    return failure if isinstance(failure, failures.UpdateError) else None


def get_severity(levelno: int) -> str:
    for threshold, severity in SEVERITIES:
        if levelno <= threshold:
            return severity
    return 'fatal'


class TextFormatter(logging.Formatter):

    def __init__(self, fmt: str | None = None, *, prefix: bool = False) -> None:
        super().__init__(fmt)
        self.prefix = prefix

    def formatMessage(self, record: logging.LogRecord) -> str:
        # The message is re-rendered from `msg` & `args` on every formatting,
        # so other handlers do not see the prefix.
        prefix = get_prefix(record) if self.prefix else None
        if prefix is not None:
            record.message = f"{prefix} {record.message}"
        return super().formatMessage(record)


class JsonFormatter(_pjl_JsonFormatter):

    def __init__(
            self,
            *args: Any,
            refkey: str | None = None,
            prefix: bool = False,
            **kwargs: Any,
    ) -> None:
        reserved_attrs = set(kwargs.pop('reserved_attrs', _pjl_RESERVED_ATTRS))
        kwargs['reserved_attrs'] = reserved_attrs | {'k8s_ref', 'failure'}
        kwargs.setdefault('timestamp', True)
        super().__init__(*args, **kwargs)
        self.refkey: str = refkey or DEFAULT_JSON_REFKEY
        self.prefix = prefix

    def add_fields(
            self,
            log_record: dict[str, object],
            record: logging.LogRecord,
            message_dict: dict[str, object],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        prefix = get_prefix(record) if self.prefix else None
        if prefix is not None and 'message' in log_record:
            log_record['message'] = f"{prefix} {log_record['message']}"

        if hasattr(record, 'k8s_ref'):
            log_record[self.refkey] = getattr(record, 'k8s_ref')

        failure = get_failure(record)
        if failure is not None:
            log_record['failure'] = {'reason': failure.reason, 'name': failure.name}

        log_record.setdefault('severity', get_severity(record.levelno))


class ConsoleHandler(logging.StreamHandler):
    """ The handler installed by `configure`, replaced on re-configuration. """


class ObjectLogger(typedefs.LoggerAdapter):
    """
    A logger on behalf of a manifest's object.

    The reference has the same fields as an object reference in K8s API,
    and is taken from the manifest, not from the live object: the namespace
    and the name are known even if the object does not exist yet.
    """

    def __init__(
            self,
            *,
            body: Mapping[str, Any],
            base: typedefs.Logger | None = None,
    ) -> None:
        metadata: Mapping[str, Any] = body.get('metadata') or {}
        k8s_ref = dict(
            apiVersion=body.get('apiVersion'),
            kind=body.get('kind'),
            namespace=metadata.get('namespace'),
            name=metadata.get('name'),
        )
        super().__init__(base if base is not None else logger, dict(k8s_ref=k8s_ref))

    def process(
            self,
            msg: str,
            kwargs: MutableMapping[str, Any],
    ) -> tuple[str, MutableMapping[str, Any]]:
        # The adapter's extras are only the defaults for the call's own extras.
        kwargs['extra'] = {**(self.extra or {}), **(kwargs.get('extra') or {})}
        return msg, kwargs


def configure(
        debug: bool | None = None,
        verbose: bool | None = None,
        quiet: bool | None = None,
        log_format: LogFormat | str = LogFormat.FULL,
        log_prefix: bool | None = None,
        log_refkey: str | None = None,
) -> None:
    level = logging.DEBUG if debug or verbose else logging.WARNING if quiet else logging.INFO
    handler = ConsoleHandler()
    handler.setFormatter(make_formatter(log_format=log_format,
                                        log_prefix=log_prefix,
                                        log_refkey=log_refkey))

    root = logging.getLogger()
    root.handlers[:] = [h for h in root.handlers if not isinstance(h, ConsoleHandler)]
    root.addHandler(handler)
    root.setLevel(level)

    # The event loop's own messages (e.g. slow callbacks) are of no use unless debugging.
    asyncio_logger = logging.getLogger('asyncio')
    asyncio_logger.propagate = bool(debug)
    if not debug:
        asyncio_logger.handlers[:] = [logging.NullHandler()]


def make_formatter(
        log_format: LogFormat | str = LogFormat.FULL,
        log_prefix: bool | None = None,
        log_refkey: str | None = None,
) -> logging.Formatter:
    """
    Make a formatter for a format; by default, only the text logs are prefixed.
    """
    prefix = log_prefix if log_prefix is not None else log_format is not LogFormat.JSON
    match log_format:
        case LogFormat.JSON:
            return JsonFormatter(refkey=log_refkey, prefix=prefix)
        case LogFormat():
            return TextFormatter(log_format.value, prefix=prefix)
        case str():
            return TextFormatter(log_format, prefix=prefix)
        case _:
            raise ValueError(f"Unsupported log format: {log_format!r}")
