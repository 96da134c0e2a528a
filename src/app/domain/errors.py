from __future__ import annotations

from typing import Iterable, Optional


class CooktopiaError(Exception):
    pass


class ValidationError(CooktopiaError):
    def __init__(self, problems: str | Iterable[str], fields: Optional[Iterable[str]] = None):
        if isinstance(problems, str):
            problems = [problems]
        self.problems = list(problems)
        self.fields = list(fields or [])
        super().__init__("; ".join(self.problems))


class InvalidArgumentError(ValidationError):
    pass


class DocumentNotFoundError(CooktopiaError):
    def __init__(self, path: str):
        super().__init__(f"Document not found: {path}")
        self.path = path


class RemoteServiceError(CooktopiaError):
    def __init__(self, operation: str, reason: object):
        super().__init__(f"Failed to {operation}: {reason}")
        self.operation = operation
        self.reason = str(reason)


class MediaStoreError(CooktopiaError):
    pass
