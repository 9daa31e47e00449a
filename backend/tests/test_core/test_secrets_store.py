"""Tests for reading mounted secrets."""

import pytest

from gitdeploy.core.exceptions import ConfigurationError
from gitdeploy.core.secrets import private_key_path, read_secret


class TestReadSecret:
    def test_strips_whitespace(self, tmp_path):
        (tmp_path / "payload-secret").write_text("  s3cret\n")
        assert read_secret("payload-secret", mount_path=str(tmp_path)) == "s3cret"

    def test_missing_secret_raises(self, tmp_path):
        with pytest.raises(ConfigurationError, match="payload-secret"):
            read_secret("payload-secret", mount_path=str(tmp_path))

    def test_default_mount_path(self):
        with pytest.raises(ConfigurationError):
            read_secret("payload-secret")


class TestPrivateKeyPath:
    def test_joins_mount_and_filename(self):
        assert private_key_path() == "/nonexistent/secrets/private-key"
