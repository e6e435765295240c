"""Ignore marker model for hiding a port from the dashboard."""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from portracker.models.base import Base

if TYPE_CHECKING:
    from portracker.models.server import Server


class PortIgnore(Base):
    """Presence of a row means the port identity is ignored."""

    __tablename__ = "ignores"

    server_id: Mapped[str] = mapped_column(
        ForeignKey("servers.id", ondelete="CASCADE"), primary_key=True
    )
    host_ip: Mapped[str] = mapped_column(String(45), primary_key=True)
    host_port: Mapped[int] = mapped_column(Integer, primary_key=True)
    protocol: Mapped[str] = mapped_column(String(3), primary_key=True, default="tcp")
    container_id: Mapped[str] = mapped_column(String(128), primary_key=True, default="")
    internal: Mapped[bool] = mapped_column(Boolean, primary_key=True, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )

    # Relationships
    server: Mapped["Server"] = relationship("Server", back_populates="ignores")
