"""
Detecting the package's own version.

The version is determined only once at startup when the code is loaded.
It is used in the CLI and in the ``User-Agent`` header of the API requests.
"""
import importlib.metadata

version: str | None = None

try:
    name, *_ = __name__.split('.')  # usually "kapply", unless renamed/forked.
    version = importlib.metadata.version(name)
except importlib.metadata.PackageNotFoundError:
    pass  # running from a source tree without installation.
