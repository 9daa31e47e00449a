import logging

from fastapi import FastAPI

from gitdeploy.api import health, push
from gitdeploy.core.config import settings
from gitdeploy.core.metrics import metrics_endpoint

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

app = FastAPI(
    title=settings.PROJECT_NAME,
    description="""
    Build-and-deploy pipeline for pushes to function repositories.

    ## Features
    * **Push handling**: Signed push events from GitHub and GitLab.
    * **Packaging**: One build context archive and image reference per function.
    * **Deploy**: Signed deploy requests with per-function failure isolation.
    * **Status**: GitHub check runs / commit statuses and GitLab commit statuses.
    """,
    version="0.1.0",
)

app.include_router(health.router, prefix="/health", tags=["health"])
app.include_router(push.router, tags=["push"])
app.add_route("/metrics", metrics_endpoint, include_in_schema=False)
