from .database import Base, make_engine, make_session_factory
from .digest import DigestRow
from .email_log import EmailLogRow
from .system_log import SystemLogRow
from .setting import SettingRow

__all__ = ["Base", "make_engine", "make_session_factory", "DigestRow", "EmailLogRow", "SystemLogRow", "SettingRow"]
