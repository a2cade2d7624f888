"""
icebreaker/models/results.py

Purpose: Read outcomes that keep "missing" apart from "store failed"

- LookupResult: single-document reads (found / not found / failed)
- ScanResult: collection scans (complete, or failed with what was gathered)
"""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

from icebreaker.core.exceptions import DataStoreError, ResourceNotFoundError

T = TypeVar("T")


class LookupStatus(str, Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    FAILED = "failed"


@dataclass(frozen=True)
class LookupResult(Generic[T]):
    status: LookupStatus
    value: Optional[T] = None
    error: Optional[BaseException] = None

    @classmethod
    def found(cls, value: T) -> "LookupResult[T]":
        return cls(LookupStatus.FOUND, value=value)

    @classmethod
    def not_found(cls) -> "LookupResult[T]":
        return cls(LookupStatus.NOT_FOUND)

    @classmethod
    def failed(cls, error: BaseException) -> "LookupResult[T]":
        return cls(LookupStatus.FAILED, error=error)

    @property
    def is_found(self) -> bool:
        return self.status is LookupStatus.FOUND

    @property
    def is_not_found(self) -> bool:
        return self.status is LookupStatus.NOT_FOUND

    @property
    def is_failed(self) -> bool:
        return self.status is LookupStatus.FAILED

    def unwrap(self) -> T:
        """
        Returns the value or raises.

        Raises:
            ResourceNotFoundError: If the document does not exist
            DataStoreError: If the read failed
        """
        if self.is_found:
            return self.value
        if self.is_not_found:
            raise ResourceNotFoundError()
        raise DataStoreError("Read from data store failed", details=str(self.error)) from self.error


@dataclass(frozen=True)
class ScanResult(Generic[T]):
    """
    Outcome of a cross-partition scan.

    When ``error`` is set the scan did not run to completion and ``items``
    holds only what was read before the failure (possibly nothing).
    """

    items: T
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def is_partial(self) -> bool:
        return self.error is not None and bool(self.items)
