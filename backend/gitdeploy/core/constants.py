"""
Shared Constants

Wire names, reserved file names and status labels used across the pipeline.
"""

from typing import Tuple

# Audit source tag
AUDIT_SOURCE = "git-tar"

# Signature header sent with every signed gateway request
SIGNATURE_HEADER = "X-Cloud-Signature"
SIGNATURE_ALGORITHM = "sha1"

# Gateway functions
GATEWAY_BUILDSHIPRUN_PATH = "function/buildshiprun"
GATEWAY_REGISTER_IMAGE_PATH = "function/register-image"
GATEWAY_IMPORT_SECRETS_PATH = "function/import-secrets"
GATEWAY_GARBAGE_COLLECT_PATH = "function/garbage-collect"
GATEWAY_GITLAB_STATUS_PATH = "function/gitlab-status"
GATEWAY_PIPELINE_LOG_PATH = "function/pipeline-log"

# Accepted gateway responses
GATEWAY_SUCCESS_CODES: Tuple[int, ...] = (200, 202)

# Repository layout
STACK_FILE_NAME = "stack.yml"
SECRETS_FILE_NAME = "secrets.yml"
TEMPLATE_DIR_NAME = "template"
BUILD_DIR_NAME = "build"

# Build context archive layout
DOCKER_CONFIG_FILE_NAME = "com.openfaas.docker.config"
CONTEXT_PREFIX = "context"
TRANSIENT_ARCHIVE_NAME = "context.tar"

# Image naming
SHORT_SHA_LENGTH = 7
DEFAULT_IMAGE_TAG = "latest"

# Registries which need an image repository created before a push
PRE_REGISTRATION_HOST_PATTERN = "amazonaws.com"

# Templates always pulled before any custom ones
DEFAULT_TEMPLATE_REPOSITORY = "https://github.com/openfaas/templates"

# Secret names
PAYLOAD_SECRET_NAME = "payload-secret"
GITLAB_TOKEN_SECRET_NAME = "gitlab-api-token"

# Pipeline states
STATUS_PENDING = "pending"
STATUS_SUCCESS = "success"
STATUS_FAILURE = "failure"

# Context label for the whole stack
STACK_CONTEXT = "stack-deploy"

# GitHub check runs
CHECK_STATUS_QUEUED = "queued"
CHECK_STATUS_COMPLETED = "completed"
CHECK_CONCLUSION_SUCCESS = "success"
CHECK_CONCLUSION_FAILURE = "failure"
CHECK_CONCLUSION_NEUTRAL = "neutral"
MAX_CHECK_MESSAGE_LENGTH = 65535
LOG_FRAME = "\n```shell\n{}\n```\n"

# GitHub App JWT lifetime
GITHUB_APP_JWT_TTL_SECONDS = 600
GITHUB_APP_JWT_CLOCK_SKEW_SECONDS = 60
