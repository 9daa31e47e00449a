"""
Shared test fixtures and configuration.

Environment variables are set BEFORE any gitdeploy imports so the settings
singleton never points at a real gateway or secret mount.
"""

import os
import sys

# Ensure the backend package is importable
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

# Override settings before any code imports the settings singleton
os.environ["GATEWAY_URL"] = "http://gateway:8080/"
os.environ["PUSH_REPOSITORY_URL"] = "registry.example.com"
os.environ["GITHUB_APP_ID"] = "4242"
os.environ["BUILD_BRANCH"] = "master"
os.environ["SECRET_MOUNT_PATH"] = "/nonexistent/secrets"
os.environ["AUDIT_URL"] = ""
os.environ["CUSTOM_TEMPLATES"] = ""
os.environ["GATEWAY_PUBLIC_URL"] = ""

import pytest  # noqa: E402

from tests.mocks.events import make_push_event  # noqa: E402


@pytest.fixture
def push_event():
    """Public GitHub push to acme/widgets."""
    return make_push_event()


@pytest.fixture
def private_push_event():
    return make_push_event(private=True, clone_url="https://github.com/acme/widgets.git")


@pytest.fixture
def gitlab_push_event():
    return make_push_event(
        scm="gitlab",
        private=True,
        clone_url="https://gitlab.example.com/acme/widgets.git",
        html_url="https://gitlab.example.com/acme/widgets",
    )


@pytest.fixture
def stack_yaml():
    return """
version: 1.0
provider:
  name: openfaas
functions:
  alpha:
    lang: python3
    handler: ./alpha
    image: acme/alpha:latest
    build_args:
      GO111MODULE: "on"
      NPM_TOKEN: secret-value
    environment:
      write_debug: true
      retries: 3
    secrets:
      - api-key
    labels:
      com.openfaas.scale.min: "1"
  beta:
    lang: node12
    handler: ./beta
    image: beta
"""


@pytest.fixture
def rsa_private_key_pem():
    """Freshly generated RSA key in PEM form, plus its public half."""
    from cryptography.hazmat.primitives import serialization
    from cryptography.hazmat.primitives.asymmetric import rsa

    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()
    public_pem = key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()
    return private_pem, public_pem
