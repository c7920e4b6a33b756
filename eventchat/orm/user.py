"""User model holding the push delivery token."""

from typing import Optional

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Document


class User(Document):
    """Application user."""

    __tablename__ = "users"

    display_name: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    fcm_token: Mapped[Optional[str]] = mapped_column(String, nullable=True)
