"""SQLAlchemy models for portracker."""

from portracker.models.base import Base
from portracker.models.custom_service_name import CustomServiceName
from portracker.models.note import Note
from portracker.models.port_ignore import PortIgnore
from portracker.models.server import LOCAL_SERVER_ID, Server

__all__ = [
    "Base",
    "CustomServiceName",
    "LOCAL_SERVER_ID",
    "Note",
    "PortIgnore",
    "Server",
]
