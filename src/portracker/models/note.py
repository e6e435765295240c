"""Note model for free-text annotations on a port."""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from portracker.models.base import Base

if TYPE_CHECKING:
    from portracker.models.server import Server


class Note(Base):
    """A user note keyed by the full port identity."""

    __tablename__ = "notes"

    server_id: Mapped[str] = mapped_column(
        ForeignKey("servers.id", ondelete="CASCADE"), primary_key=True
    )
    host_ip: Mapped[str] = mapped_column(String(45), primary_key=True)  # IPv6 max length
    host_port: Mapped[int] = mapped_column(Integer, primary_key=True)
    protocol: Mapped[str] = mapped_column(String(3), primary_key=True, default="tcp")
    # Empty string means "not bound to a container"
    container_id: Mapped[str] = mapped_column(String(128), primary_key=True, default="")
    internal: Mapped[bool] = mapped_column(Boolean, primary_key=True, default=False)
    note: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    server: Mapped["Server"] = relationship("Server", back_populates="notes")
