"""In-process class roster."""

from __future__ import annotations

from collections.abc import Iterable, Mapping


class StaticClassRoster:
    """ClassRoster backed by a fixed class_id -> student ids mapping.

    Suitable for tests and for deployments that sync enrollment into memory.
    Unknown classes have no students.
    """

    def __init__(self, classes: Mapping[str, Iterable[str]] | None = None) -> None:
        self._classes: dict[str, list[str]] = {
            class_id: list(dict.fromkeys(ids)) for class_id, ids in (classes or {}).items()
        }

    def enroll(self, class_id: str, user_id: str) -> None:
        members = self._classes.setdefault(class_id, [])
        if user_id not in members:
            members.append(user_id)

    async def get_student_ids(self, class_id: str) -> list[str]:
        return list(self._classes.get(class_id, []))
