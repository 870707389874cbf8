from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, Boolean, DateTime, Index, Integer, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


_bigint_pk = BigInteger().with_variant(Integer(), "sqlite")


class WrongAnswer(Base):
    """Per-user, per-question history of misses and corrections."""

    __tablename__ = "wrong_answers"
    __table_args__ = (Index("ix_wrong_answers_user", "user_id"),)

    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    question_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    last_wrong: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    last_correct: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    question_snapshot: Mapped[str] = mapped_column(Text, nullable=False, default="", server_default="")


class ScoreEntry(Base):
    __tablename__ = "scores"
    __table_args__ = (
        Index("ix_scores_user", "user_id"),
        Index("ix_scores_created", "created"),
    )

    id: Mapped[int] = mapped_column(_bigint_pk, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(320), nullable=True)
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    total: Mapped[int] = mapped_column(Integer, nullable=False)
    exam: Mapped[str] = mapped_column(String(128), nullable=False, default="all")
    token: Mapped[Optional[str]] = mapped_column(String(8), nullable=True)
    created: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Attempt(Base):
    __tablename__ = "attempts"
    __table_args__ = (Index("ix_attempts_user_ts", "user_id", "ts"),)

    id: Mapped[int] = mapped_column(_bigint_pk, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    question_id: Mapped[str] = mapped_column(String(128), nullable=False)
    question_text: Mapped[str] = mapped_column(Text, nullable=False, default="")
    correct: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    ts: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
