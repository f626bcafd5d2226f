from collections.abc import Mapping
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")
E = TypeVar("E", bound=BaseException)


@dataclass(frozen=True)
class Result(Generic[T, E]):
    ok: bool
    value: T | None = None
    error: E | None = None

    @staticmethod
    def success(v: T) -> "Result[T, E]":
        return Result(ok=True, value=v)

    @staticmethod
    def failure(e: E) -> "Result[T, E]":
        return Result(ok=False, error=e)


Vector = tuple[float, ...]  # 768-d full, 256-d hot; dimension checked in domain.mrl
Score = float

# JSON-compatible scalar kinds permitted in entry metadata
MetadataValue = str | int | float | bool | None
Metadata = Mapping[str, MetadataValue]

_METADATA_KINDS = (str, int, float, bool, type(None))


def coerce_metadata(raw: Mapping[str, object] | None) -> dict[str, MetadataValue]:
    """Validate a loosely-typed mapping into entry metadata.

    Raises:
        ValidationError: If a key is not a string or a value is not a JSON scalar
    """
    from .errors import ValidationError

    if raw is None:
        return {}
    out: dict[str, MetadataValue] = {}
    for key, value in raw.items():
        if not isinstance(key, str):
            raise ValidationError(f"metadata key must be str, got {type(key).__name__}")
        if not isinstance(value, _METADATA_KINDS):
            raise ValidationError(
                f"metadata value for '{key}' must be a JSON scalar, got {type(value).__name__}"
            )
        out[key] = value  # type: ignore[assignment]
    return out
