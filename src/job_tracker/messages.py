"""
User-facing messages.

Setup-phase errors carry a localized message. Applications plug their own
i18n layer in through the Translator protocol; DefaultTranslator ships an
English catalog keyed like the application bundles
(``<PREFIX>.ERRORS.FILE_UPLOAD_FAILED``, ``common.error.emptyFile``, ...).
"""

from __future__ import annotations

import string
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Translator(Protocol):
    def instant(self, key: str, **params: Any) -> str: ...


# Keys relative to a job type's translation prefix
FILE_UPLOAD_FAILED = "ERRORS.FILE_UPLOAD_FAILED"
PROCESSING_TRIGGER_FAILED = "ERRORS.PROCESSING_TRIGGER_FAILED"
JOB_CREATION_FAILED = "ERRORS.JOB_CREATION_FAILED"
STATUS_FETCH_FAILED = "ERRORS.STATUS_FETCH_FAILED"

# Shared keys
EMPTY_FILE = "common.error.emptyFile"
REQUIRED_COLUMNS = "common.error.requiredColumns"

DEFAULT_CATALOG: dict[str, str] = {
    FILE_UPLOAD_FAILED: "The file could not be uploaded.",
    PROCESSING_TRIGGER_FAILED: "Processing of the file could not be started.",
    JOB_CREATION_FAILED: "The job could not be created.",
    STATUS_FETCH_FAILED: "The job status could not be retrieved.",
    EMPTY_FILE: "The file contains no data.",
    REQUIRED_COLUMNS: "Required columns are missing: $columns",
}


def prefixed(prefix: str, key: str) -> str:
    return f"{prefix}.{key}" if prefix else key


class DefaultTranslator:
    """
    Catalog lookup with ``$name`` parameter substitution.

    Keys are looked up verbatim first, then with their job-type prefix
    stripped, so ``EINLADUNG.ERRORS.FILE_UPLOAD_FAILED`` resolves to the
    generic upload message. Unknown keys are returned unchanged.
    """

    def __init__(self, catalog: dict[str, str] | None = None) -> None:
        self.catalog = dict(DEFAULT_CATALOG)
        if catalog:
            self.catalog.update(catalog)

    def _lookup(self, key: str) -> str | None:
        if key in self.catalog:
            return self.catalog[key]
        marker = key.find(".ERRORS.")
        if marker >= 0:
            return self.catalog.get(key[marker + 1 :])
        return None

    def instant(self, key: str, **params: Any) -> str:
        template = self._lookup(key)
        if template is None:
            return key
        return string.Template(template).safe_substitute(params)


__all__ = [
    "Translator",
    "DefaultTranslator",
    "DEFAULT_CATALOG",
    "prefixed",
    "FILE_UPLOAD_FAILED",
    "PROCESSING_TRIGGER_FAILED",
    "JOB_CREATION_FAILED",
    "STATUS_FETCH_FAILED",
    "EMPTY_FILE",
    "REQUIRED_COLUMNS",
]
