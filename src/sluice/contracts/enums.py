"""Status codes, modes, and kinds shared across processors and the host."""

from enum import StrEnum


class Determinism(StrEnum):
    """Processor determinism classification.

    Every processor declares one of these. It tells an operator what a
    replay of the same input would do:
    - DETERMINISTIC: Same input, same routing decision
    - IO_WRITE: Has side effects on an external system
    - NON_DETERMINISTIC: Output cannot be reproduced
    """

    DETERMINISTIC = "deterministic"
    IO_WRITE = "io_write"
    NON_DETERMINISTIC = "non_deterministic"


class IndexOperation(StrEnum):
    """Bulk operation kinds accepted by the search backend.

    Values are lowercase; incoming operation names are matched
    case-insensitively via parse().
    """

    INDEX = "index"
    UPDATE = "update"
    UPSERT = "upsert"
    DELETE = "delete"

    @classmethod
    def parse(cls, value: str) -> "IndexOperation | None":
        """Return the operation for a case-insensitive name, or None."""
        try:
            return cls(value.lower())
        except ValueError:
            return None

    @property
    def requires_identifier(self) -> bool:
        """Every operation except index must address an existing document."""
        return self is not IndexOperation.INDEX


class UpsertMode(StrEnum):
    """Body layout for update/upsert operations."""

    DOC_AS_UPSERT = "doc_as_upsert"
    SCRIPTED_UPSERT = "scripted_upsert"


class Route(StrEnum):
    """Output names of the bulk writer."""

    SUCCESS = "success"
    FAILURE = "failure"
    RETRY = "retry"
