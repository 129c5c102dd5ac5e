from sqlalchemy import Column, Float, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import declarative_base

Base = declarative_base()

class LockHistory(Base):
    __tablename__ = "tool_lockstats_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    taskid = Column(Integer, nullable=False, index=True)
    classname = Column(String(255), nullable=False, index=True)
    duration = Column(Float, nullable=False, default=0)
    lockcount = Column(Integer, nullable=False, default=0)
    # unix timestamp
    released = Column(Integer, nullable=False, index=True)

class PluginConfig(Base):
    __tablename__ = "config_plugins"
    __table_args__ = (UniqueConstraint("plugin", "name"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    plugin = Column(String(100), nullable=False)
    name = Column(String(100), nullable=False)
    value = Column(Text, nullable=False)
