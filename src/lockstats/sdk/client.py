import re
from typing import Any, Dict, Optional

import httpx

REPORT_PATH = "/admin/tool/lockstats/"


class LockStatsClient:
    def __init__(self, api_url: str, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_url = api_url.rstrip("/")
        self.client = httpx.AsyncClient(base_url=self.api_url, transport=transport)

    async def get_history_report(
        self,
        sort: Optional[str] = None,
        direction: Optional[str] = None,
        page: Optional[int] = None,
    ) -> str:
        params: Dict[str, Any] = {}
        if sort:
            params["tsort"] = sort
        if direction:
            params["tdir"] = direction
        if page is not None:
            params["page"] = page

        response = await self.client.get(REPORT_PATH, params=params)
        response.raise_for_status()
        return response.text

    async def download_history(self, dataformat: str = "csv") -> dict:
        """
        Returns:
            {
                "content": bytes,
                "filename": str | None,
                "total": int (total reported by the server),
            }
        """
        response = await self.client.get(REPORT_PATH, params={"download": dataformat})
        response.raise_for_status()

        disposition = response.headers.get("content-disposition", "")
        match = re.search(r'filename="([^"]+)"', disposition)

        return {
            "content": response.content,
            "filename": match.group(1) if match else None,
            "total": int(response.headers.get("x-total-count", 0)),
        }

    async def get_config(self) -> dict:
        response = await self.client.get("/v1/config")
        response.raise_for_status()
        return response.json()

    async def set_threshold(self, threshold: float) -> dict:
        response = await self.client.post("/v1/config/threshold", json={"threshold": threshold})
        response.raise_for_status()
        return response.json()

    async def close(self):
        await self.client.aclose()
