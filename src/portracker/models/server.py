"""Server model for the local host and registered peers."""

from typing import TYPE_CHECKING

from sqlalchemy import Boolean, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from portracker.models.base import Base

if TYPE_CHECKING:
    from portracker.models.custom_service_name import CustomServiceName
    from portracker.models.note import Note
    from portracker.models.port_ignore import PortIgnore

LOCAL_SERVER_ID = "local"


class Server(Base):
    """A server whose ports are tracked; annotations hang off it."""

    __tablename__ = "servers"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    label: Mapped[str] = mapped_column(String(255), nullable=False)
    url: Mapped[str | None] = mapped_column(Text, nullable=True)
    type: Mapped[str] = mapped_column(
        String(20), nullable=False, server_default="peer"
    )  # 'local' | 'peer'
    parent_id: Mapped[str | None] = mapped_column(
        ForeignKey("servers.id", ondelete="SET NULL"), nullable=True
    )
    platform_type: Mapped[str] = mapped_column(
        String(50), nullable=False, server_default="unknown"
    )
    unreachable: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default="0"
    )

    # Relationships
    notes: Mapped[list["Note"]] = relationship(
        "Note", back_populates="server", cascade="all, delete-orphan", passive_deletes=True
    )
    ignores: Mapped[list["PortIgnore"]] = relationship(
        "PortIgnore", back_populates="server", cascade="all, delete-orphan", passive_deletes=True
    )
    custom_service_names: Mapped[list["CustomServiceName"]] = relationship(
        "CustomServiceName",
        back_populates="server",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
