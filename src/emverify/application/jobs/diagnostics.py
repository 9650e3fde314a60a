"""
Diagnostics Reporter - attaches server-reported errors to documents.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator
from typing import Any

from emverify.core.domain.entities import Diagnostic, PositionalError
from emverify.core.domain.enums import DiagnosticSeverity


UpdateCallback = Callable[[str, list[Diagnostic]], None]


class DiagnosticCollection:
    """Diagnostics per document. Setting a document replaces its list."""

    def __init__(self, name: str = "emverify"):
        self.name = name
        self._entries: dict[str, list[Diagnostic]] = {}

    def set(self, document: str, diagnostics: Iterable[Diagnostic]) -> None:
        self._entries[document] = list(diagnostics)

    def get(self, document: str) -> list[Diagnostic]:
        return list(self._entries.get(document, []))

    def delete(self, document: str) -> None:
        self._entries.pop(document, None)

    def clear(self) -> None:
        self._entries.clear()

    def documents(self) -> list[str]:
        return sorted(self._entries)

    def __contains__(self, document: object) -> bool:
        return document in self._entries

    def __iter__(self) -> Iterator[tuple[str, list[Diagnostic]]]:
        for document in self.documents():
            yield document, self.get(document)

    def __len__(self) -> int:
        return sum(len(d) for d in self._entries.values())


def to_diagnostic(
    error: PositionalError | dict[str, Any],
    severity: DiagnosticSeverity = DiagnosticSeverity.ERROR,
    source: str = "emverify",
) -> Diagnostic:
    """Convert a 1-indexed server error into a 0-indexed diagnostic."""
    if isinstance(error, dict):
        error = PositionalError.from_dict(error)
    return Diagnostic(
        line=max(0, error.line - 1),
        column=max(0, error.column - 1),
        message=error.message,
        severity=severity,
        source=source,
    )


class DiagnosticsReporter:
    """
    Replaces a document's diagnostics with a server error list.

    Args:
        collection: Where diagnostics are stored (a new one by default)
        on_update: Called with (document, diagnostics) after every change
        source: Source label put on each diagnostic
    """

    def __init__(
        self,
        collection: DiagnosticCollection | None = None,
        on_update: UpdateCallback | None = None,
        source: str = "emverify",
    ):
        self.collection = collection if collection is not None else DiagnosticCollection()
        self.on_update = on_update
        self.source = source
        self.logger = logging.getLogger("DiagnosticsReporter")

    def report(
        self,
        document: str,
        errors: Iterable[PositionalError | dict[str, Any]],
        severity: DiagnosticSeverity = DiagnosticSeverity.ERROR,
    ) -> list[Diagnostic]:
        diagnostics = [to_diagnostic(e, severity, self.source) for e in errors]
        self.collection.set(document, diagnostics)
        self.logger.debug(f"{len(diagnostics)} diagnostics for {document}")
        if self.on_update is not None:
            self.on_update(document, diagnostics)
        return diagnostics

    def clear(self, document: str | None = None) -> None:
        """Remove diagnostics for one document, or for all of them."""
        documents = [document] if document is not None else self.collection.documents()
        for doc in documents:
            self.collection.delete(doc)
            if self.on_update is not None:
                self.on_update(doc, [])
