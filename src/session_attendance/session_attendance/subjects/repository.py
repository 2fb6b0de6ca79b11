from __future__ import annotations

from typing import Optional, Protocol, Sequence

from .model import Subject


class SubjectRepository(Protocol):
    """Repository interface for Subject.

    Note (DIP): services depend on this interface, not on a concrete DB.
    """

    def get_by_handle(self, handle: str) -> Optional[Subject]:
        raise NotImplementedError

    def list_all(self) -> Sequence[Subject]:
        raise NotImplementedError

    def set_face_embedding(self, handle: str, embedding: Sequence[float]) -> bool:
        raise NotImplementedError
