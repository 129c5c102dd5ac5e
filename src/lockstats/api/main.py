import os
from typing import Dict

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse, Response
from pydantic import BaseModel, Field

from lockstats.core.dataformat import is_valid_dataformat
from lockstats.core.history import PLUGIN, HistoryTable
from lockstats.logger import logger
from lockstats.storage.config_store import ConfigStore
from lockstats.storage.database import Database

load_dotenv()

app = FastAPI(title="lockstats", version="0.1.0")

PAGE_SIZE = int(os.getenv("LOCKSTATS_PAGE_SIZE", "50"))
DEFAULT_THRESHOLD = os.getenv("LOCKSTATS_THRESHOLD", "60")

# Init components
database = Database(database_url=os.getenv("DATABASE_URL", "sqlite:///./lockstats.db"))
config_store = ConfigStore(database)


# Create tables on startup
@app.on_event("startup")
async def startup():
    database.create_tables()

    if config_store.get_config(PLUGIN, "threshold") is None:
        config_store.set_config(PLUGIN, "threshold", DEFAULT_THRESHOLD)
        logger.info(f"Threshold not configured, using {DEFAULT_THRESHOLD}s")

    logger.info("✓ Database ready")


@app.on_event("shutdown")
async def shutdown():
    logger.info("Shutting down lockstats...")
    database.engine.dispose()
    logger.info("✓ Database connections closed")


# Request models
class ThresholdRequest(BaseModel):
    threshold: float = Field(..., ge=0)


# Endpoints
@app.get("/admin/tool/lockstats/")
def history_report(request: Request, download: str = ""):
    if download and not is_valid_dataformat(download):
        raise HTTPException(status_code=400, detail=f"Unknown dataformat '{download}'")

    try:
        table = HistoryTable(
            request.url.path, database, config_store, id="", params=dict(request.query_params)
        )

        if table.is_downloading(download, "tool_lockstats_history", "history"):
            output = table.download()
            return Response(
                content=output.content,
                media_type=output.media_type,
                headers={
                    "Content-Disposition": f'attachment; filename="{output.filename}"',
                    "X-Total-Count": str(output.total),
                },
            )

        output = table.out(PAGE_SIZE, True)
        return HTMLResponse(content=output.content)
    except Exception as e:
        logger.exception("Lock history report failed")
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/v1/config")
def get_config() -> Dict[str, str]:
    return config_store.get_plugin_config(PLUGIN)


@app.post("/v1/config/threshold")
def set_threshold(request: ThresholdRequest):
    try:
        config_store.set_config(PLUGIN, "threshold", request.threshold)
    except Exception as e:
        logger.exception("Saving threshold failed")
        raise HTTPException(status_code=500, detail=str(e))

    logger.info(f"Threshold set to {request.threshold}s")
    return {"status": "updated", "threshold": request.threshold}


@app.get("/health")
async def health():
    return {"status": "healthy"}
