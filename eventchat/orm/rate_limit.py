"""RateLimitState model: one fixed-window counter per caller identity."""

from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Document


class RateLimitState(Document):
    """Per-identity counter, valid only relative to ``last_reset``.

    ``version`` is bumped on every write; an UPDATE that finds a different
    version raises ``StaleDataError`` instead of overwriting a concurrent
    increment.
    """

    __tablename__ = "rate_limits"
    __table_args__ = (Index("idx_rate_limits_user_id", "user_id", unique=True),)

    user_id: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_reset: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}
