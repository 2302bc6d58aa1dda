"""
Loading of the manifests from the YAML files.

Every file can contain multiple YAML documents (separated with ``---``).
The documents are returned in the order of the files and in the order within
the files. Empty documents are skipped; non-mapping documents are errors.
"""
import os.path
from collections.abc import Iterable
from typing import cast

import yaml

from kapply.structs import bodies


class ManifestError(Exception):
    """ Raised when a manifest file has something other than the objects. """


def load_manifests(paths: Iterable[str]) -> list[bodies.RawBody]:
    manifests: list[bodies.RawBody] = []
    for path in paths:
        with open(os.path.expanduser(path), encoding='utf-8') as f:
            try:
                docs = list(yaml.safe_load_all(f))
            except yaml.YAMLError as e:
                raise ManifestError(f"Cannot parse {path!r}: {e}") from e
            for idx, doc in enumerate(docs):
                if doc is None:
                    continue
                if not isinstance(doc, dict):
                    raise ManifestError(f"Document #{idx} in {path!r} is not an object.")
                if 'kind' not in doc or 'apiVersion' not in doc:
                    raise ManifestError(f"Document #{idx} in {path!r} has no kind or apiVersion.")
                manifests.append(cast(bodies.RawBody, doc))
    return manifests
