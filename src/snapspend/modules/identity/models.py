from __future__ import annotations

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from snapspend.core.models import Base, Timestamped


class User(Timestamped, Base):
    __tablename__ = "identity_user"

    # Identifier issued by the upstream auth provider; never generated here.
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    name: Mapped[str] = mapped_column(String(200), default="App User")
