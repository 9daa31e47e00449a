"""Tests for stack.yml parsing."""

import pytest

from gitdeploy.core.exceptions import ManifestError
from gitdeploy.models.manifest import load_manifest, parse_manifest


class TestParseManifest:
    def test_functions_in_declaration_order(self, stack_yaml):
        manifest = parse_manifest(stack_yaml)
        assert manifest.names() == ["alpha", "beta"]

    def test_function_fields(self, stack_yaml):
        alpha = parse_manifest(stack_yaml).get("alpha")
        assert alpha.name == "alpha"
        assert alpha.lang == "python3"
        assert alpha.handler == "./alpha"
        assert alpha.image == "acme/alpha:latest"
        assert alpha.build_args == {"GO111MODULE": "on", "NPM_TOKEN": "secret-value"}
        assert alpha.secrets == ["api-key"]
        assert alpha.labels == {"com.openfaas.scale.min": "1"}
        assert alpha.annotations is None

    def test_scalar_values_become_strings(self, stack_yaml):
        alpha = parse_manifest(stack_yaml).get("alpha")
        assert alpha.environment == {"write_debug": "true", "retries": "3"}

    def test_optional_fields_default_empty(self, stack_yaml):
        beta = parse_manifest(stack_yaml).get("beta")
        assert beta.build_args == {}
        assert beta.environment == {}
        assert beta.secrets == []
        assert beta.labels is None

    def test_null_secrets_become_empty(self):
        manifest = parse_manifest("functions:\n  fn:\n    image: fn\n    secrets:\n")
        assert manifest.get("fn").secrets == []

    def test_secret_count(self, stack_yaml):
        assert parse_manifest(stack_yaml).secret_count() == 1

    def test_unknown_fields_ignored(self):
        manifest = parse_manifest("functions:\n  fn:\n    image: fn\n    build_options: [dev]\n")
        assert manifest.names() == ["fn"]


class TestParseManifestErrors:
    def test_invalid_yaml(self):
        with pytest.raises(ManifestError, match="unable to parse"):
            parse_manifest("functions: [unclosed")

    def test_not_a_mapping(self):
        with pytest.raises(ManifestError, match="mapping"):
            parse_manifest("- just\n- a list\n")

    def test_no_functions(self):
        with pytest.raises(ManifestError, match="no functions"):
            parse_manifest("provider:\n  name: openfaas\n")

    def test_empty_functions(self):
        with pytest.raises(ManifestError, match="no functions"):
            parse_manifest("functions: {}\n")

    def test_missing_image(self):
        with pytest.raises(ManifestError, match="fn"):
            parse_manifest("functions:\n  fn:\n    lang: go\n")

    def test_function_not_a_mapping(self):
        with pytest.raises(ManifestError, match="fn"):
            parse_manifest("functions:\n  fn: go\n")


class TestLoadManifest:
    def test_reads_file(self, tmp_path, stack_yaml):
        path = tmp_path / "stack.yml"
        path.write_text(stack_yaml)
        assert load_manifest(str(path)).names() == ["alpha", "beta"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(ManifestError, match="unable to read"):
            load_manifest(str(tmp_path / "stack.yml"))
