import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Header, HTTPException, Request, status
from pydantic import ValidationError

from gitdeploy.core.config import settings
from gitdeploy.core.constants import PAYLOAD_SECRET_NAME
from gitdeploy.core.exceptions import ConfigurationError
from gitdeploy.core.metrics import webhooks_received_total
from gitdeploy.core.secrets import read_secret
from gitdeploy.core.security import validate_signature
from gitdeploy.models.push_event import PushEvent
from gitdeploy.services.pipeline import run_pipeline

logger = logging.getLogger(__name__)

router = APIRouter()


def parse_signed_push(body: bytes, signature: Optional[str], secret: Optional[str]) -> PushEvent:
    """
    Validates the signature (when a secret is given) and parses the push event.

    Raises HTTPException 401 for a bad signature and 400 for a bad payload.
    """
    if secret is not None and not validate_signature(body, signature, secret):
        webhooks_received_total.labels(outcome="invalid_signature").inc()
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid payload signature")

    try:
        return PushEvent.model_validate_json(body)
    except ValidationError as e:
        webhooks_received_total.labels(outcome="invalid_payload").inc()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid push event: {e}")


@router.post("/", summary="Handle Push Event", status_code=status.HTTP_202_ACCEPTED)
async def handle_push(
    request: Request,
    background_tasks: BackgroundTasks,
    x_cloud_signature: Optional[str] = Header(None),
):
    """
    Accepts a signed push event and runs the pipeline in the background.
    Pushes to branches other than the build branch are skipped.
    """
    secret = None
    if settings.VALIDATE_HMAC:
        try:
            secret = read_secret(PAYLOAD_SECRET_NAME)
        except ConfigurationError as e:
            logger.error(str(e))
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Payload secret unavailable")

    event = parse_signed_push(await request.body(), x_cloud_signature, secret)

    if event.branch and event.branch != settings.BUILD_BRANCH:
        webhooks_received_total.labels(outcome="skipped").inc()
        return {"status": "skipped", "reason": f"branch {event.branch} is not {settings.BUILD_BRANCH}"}

    webhooks_received_total.labels(outcome="accepted").inc()
    background_tasks.add_task(run_pipeline, event)
    return {
        "status": "accepted",
        "owner": event.owner,
        "repo": event.repo_name,
        "sha": event.after_commit_id,
    }
