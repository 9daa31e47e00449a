import logging
from typing import Optional

import httpx
from pydantic import BaseModel

from gitdeploy.core.config import settings
from gitdeploy.core.constants import AUDIT_SOURCE
from gitdeploy.core.http_utils import InstrumentedAsyncClient

logger = logging.getLogger(__name__)


class AuditEvent(BaseModel):
    source: str = AUDIT_SOURCE
    message: str
    owner: str
    repo: str


class AuditClient:
    """Posts human-readable audit records. Disabled when no audit URL is set."""

    def __init__(
        self,
        url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = settings.AUDIT_URL if url is None else url
        self._client_kwargs = {"transport": transport} if transport else {}

    async def post(self, message: str, owner: str, repo: str) -> bool:
        logger.info(f"audit [{owner}/{repo}]: {message}")
        if not self.url:
            return False

        event = AuditEvent(message=message, owner=owner, repo=repo)
        try:
            async with InstrumentedAsyncClient("Audit", timeout=10.0, **self._client_kwargs) as client:
                response = await client.post(self.url, json=event.model_dump())
            if response.status_code >= 300:
                logger.warning(f"Audit event rejected with status {response.status_code}")
                return False
            return True
        except httpx.HTTPError as e:
            logger.warning(f"Error posting audit event: {e}")
            return False
