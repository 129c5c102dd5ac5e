from typing import Any, Dict, Optional

from .database import Database
from .models import PluginConfig


class ConfigStore:
    """Per-plugin key/value settings backed by the config_plugins table."""

    def __init__(self, database: Database):
        self.database = database

    def get_config(self, plugin: str, name: str, default: Optional[str] = None) -> Optional[str]:
        session = self.database.get_session()
        try:
            row = (
                session.query(PluginConfig)
                .filter(PluginConfig.plugin == plugin, PluginConfig.name == name)
                .one_or_none()
            )
            return row.value if row is not None else default
        finally:
            session.close()

    def get_plugin_config(self, plugin: str) -> Dict[str, str]:
        session = self.database.get_session()
        try:
            rows = session.query(PluginConfig).filter(PluginConfig.plugin == plugin).all()
            return {row.name: row.value for row in rows}
        finally:
            session.close()

    def set_config(self, plugin: str, name: str, value: Any) -> None:
        """
        Store a setting as text. Passing None removes it.
        """
        session = self.database.get_session()
        try:
            row = (
                session.query(PluginConfig)
                .filter(PluginConfig.plugin == plugin, PluginConfig.name == name)
                .one_or_none()
            )
            if value is None:
                if row is not None:
                    session.delete(row)
            elif row is None:
                session.add(PluginConfig(plugin=plugin, name=name, value=str(value)))
            else:
                row.value = str(value)
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
