"""Custom service name model for user-chosen port labels."""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from portracker.models.base import Base

if TYPE_CHECKING:
    from portracker.models.server import Server


class CustomServiceName(Base):
    """Overrides the detected service name for one port identity."""

    __tablename__ = "custom_service_names"

    server_id: Mapped[str] = mapped_column(
        ForeignKey("servers.id", ondelete="CASCADE"), primary_key=True
    )
    host_ip: Mapped[str] = mapped_column(String(45), primary_key=True)
    host_port: Mapped[int] = mapped_column(Integer, primary_key=True)
    protocol: Mapped[str] = mapped_column(String(3), primary_key=True, default="tcp")
    container_id: Mapped[str] = mapped_column(String(128), primary_key=True, default="")
    internal: Mapped[bool] = mapped_column(Boolean, primary_key=True, default=False)
    custom_name: Mapped[str] = mapped_column(String(255), nullable=False)
    original_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    server: Mapped["Server"] = relationship("Server", back_populates="custom_service_names")
