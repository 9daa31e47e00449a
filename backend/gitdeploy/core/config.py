from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    PROJECT_NAME: str = "gitdeploy"

    # Gateway
    GATEWAY_URL: str = "http://gateway:8080/"
    GATEWAY_PUBLIC_URL: str = ""
    DNS_SUFFIX: str = ""
    HTTP_TIMEOUT_SECONDS: float = 30.0

    # Images
    PUSH_REPOSITORY_URL: str = ""
    BUILD_BRANCH: str = "master"
    ALLOWED_BUILD_ARGS: List[str] = ["GO111MODULE"]

    # Templates (comma separated list of git URLs)
    CUSTOM_TEMPLATES: str = ""

    # GitHub App
    GITHUB_APP_ID: str = ""
    GITHUB_API_URL: str = "https://api.github.com"

    # Status reporting
    REPORT_STATUS: bool = True
    USE_CHECKS: bool = True

    # Inbound webhook
    VALIDATE_HMAC: bool = True

    # Secrets
    SECRET_MOUNT_PATH: str = "/var/openfaas/secrets"
    PRIVATE_KEY_FILENAME: str = "private-key"

    # Working directory for clones, defaults to the system temp dir
    WORK_DIR: str = ""

    # Deploy requests in flight per push
    DEPLOY_CONCURRENCY: int = 1

    # Audit
    AUDIT_URL: str = ""

    class Config:
        case_sensitive = True
        env_file = ".env"


settings = Settings()
