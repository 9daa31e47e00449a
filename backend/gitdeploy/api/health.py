from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from gitdeploy.core.config import settings
from gitdeploy.services.builder import FaasCliBuilder
from gitdeploy.services.fetcher import GitCliFetcher

router = APIRouter()


@router.get("/live", summary="Liveness Probe")
async def liveness():
    """
    Liveness probe to check if the application process is running.
    """
    return {"status": "alive"}


@router.get("/ready", summary="Readiness Probe")
async def readiness():
    """
    Readiness probe.
    Checks:
    1. git and faas-cli are on the PATH
    2. The gateway and registry are configured
    """
    components = {
        "git": "available" if GitCliFetcher().is_tool_available() else "missing",
        "faas-cli": "available" if FaasCliBuilder().is_tool_available() else "missing",
        "gateway": "configured" if settings.GATEWAY_URL else "not_configured",
        "registry": "configured" if settings.PUSH_REPOSITORY_URL else "not_configured",
    }
    is_ready = all(value in ("available", "configured") for value in components.values())

    if is_ready:
        return {"status": "ready", "components": components}

    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "not_ready", "components": components},
    )
