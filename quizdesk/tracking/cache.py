from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Iterable

from quizdesk.quiz.models import WrongAnswerRecord


class WrongAnswerCache:
    """Local projection of the signed-in user's wrong-answer records.

    ``generation`` changes whenever the owning identity changes; writers
    capture it before suspending and drop their result if it moved.
    """

    def __init__(self) -> None:
        self._records: dict[str, WrongAnswerRecord] = {}
        self._owner: str | None = None
        self._generation = 0

    @property
    def owner(self) -> str | None:
        return self._owner

    @property
    def generation(self) -> int:
        return self._generation

    def reset(self, owner: str | None) -> int:
        self._records.clear()
        self._owner = owner
        self._generation += 1
        return self._generation

    def replace(self, records: Iterable[WrongAnswerRecord]) -> None:
        self._records = {record.question_id: record for record in records}

    def get(self, question_id: str) -> WrongAnswerRecord | None:
        return self._records.get(question_id)

    @property
    def records(self) -> dict[str, WrongAnswerRecord]:
        return dict(self._records)

    @property
    def missed(self) -> dict[str, WrongAnswerRecord]:
        """Records whose latest evaluation was a miss."""

        return {qid: record for qid, record in self._records.items() if not record.is_resolved}

    @property
    def missed_ids(self) -> frozenset[str]:
        return frozenset(self.missed)

    def missed_count(self, question_id: str) -> int | None:
        record = self._records.get(question_id)
        if record is None or record.is_resolved:
            return None
        return record.count

    def note_miss(self, question_id: str, snapshot: str, now: datetime) -> WrongAnswerRecord:
        current = self._records.get(question_id)
        if current is None:
            record = WrongAnswerRecord(question_id=question_id, count=1, last_wrong=now, question_snapshot=snapshot)
        else:
            record = replace(current, count=current.count + 1, last_wrong=now, question_snapshot=snapshot)
        self._records[question_id] = record
        return record

    def note_correction(self, question_id: str, now: datetime) -> WrongAnswerRecord | None:
        current = self._records.get(question_id)
        if current is None:
            return None
        record = replace(current, last_correct=now)
        self._records[question_id] = record
        return record

    def __contains__(self, question_id: object) -> bool:
        return isinstance(question_id, str) and self.missed_count(question_id) is not None

    def __len__(self) -> int:
        return len(self.missed)


__all__ = ["WrongAnswerCache"]
