from typing import Any, Dict, List, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from .models import Base

class Database:
    def __init__(self, database_url: str):
        engine_args: Dict[str, Any] = {"echo": False}
        if database_url.startswith("sqlite"):
            engine_args["connect_args"] = {"check_same_thread": False}
            if database_url in ("sqlite://", "sqlite:///:memory:"):
                # One connection, otherwise every checkout sees an empty database
                engine_args["poolclass"] = StaticPool
        self.engine = create_engine(database_url, **engine_args)
        self.SessionLocal = sessionmaker(bind=self.engine)

    def create_tables(self):
        Base.metadata.create_all(bind=self.engine)

    def get_session(self):
        return self.SessionLocal()

    def count_records_sql(self, sql: str, params: Optional[Dict[str, Any]] = None) -> int:
        with self.engine.connect() as conn:
            return int(conn.execute(text(sql), params or {}).scalar() or 0)

    def get_records_sql(
        self,
        sql: str,
        params: Optional[Dict[str, Any]] = None,
        limitfrom: int = 0,
        limitnum: int = 0,
    ) -> List[Dict[str, Any]]:
        """
        Run a raw SELECT and return each row as a plain dict.
        limitnum=0 means no limit.
        """
        params = dict(params or {})
        if limitnum > 0:
            sql = f"{sql} LIMIT :_limitnum OFFSET :_limitfrom"
            params["_limitnum"] = limitnum
            params["_limitfrom"] = max(limitfrom, 0)

        with self.engine.connect() as conn:
            result = conn.execute(text(sql), params)
            return [dict(row) for row in result.mappings()]
