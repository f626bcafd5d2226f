from collections.abc import Mapping, Sequence
from typing import Protocol, runtime_checkable

from tiered_search.domain.types import Vector


@runtime_checkable
class FullEmbeddingProvider(Protocol):
    """Phase-2 source of full-precision vectors.

    Returns a mapping covering the requested ids; None marks an id whose
    vector no longer exists.

    Raises:
        EmbeddingProviderError: If the backing store fails
    """

    def __call__(self, ids: Sequence[str]) -> Mapping[str, Vector | None]: ...
