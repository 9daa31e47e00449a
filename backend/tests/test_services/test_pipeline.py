"""End-to-end tests for one push through the pipeline, with every external collaborator faked."""

import asyncio

import pytest

from gitdeploy.core.exceptions import ConfigurationError, ManifestError, TemplateError
from gitdeploy.services.audit import AuditClient
from gitdeploy.services.gateway import GatewayClient
from gitdeploy.services.pipeline import PushPipeline
from tests.mocks.collaborators import FakeBuilder, FakeFetcher, FakeTemplateFetcher, RecordingReporter
from tests.mocks.events import make_push_event
from tests.mocks.gateway import FakeGateway


def _pipeline(tmp_path, fake_gateway, reporter, files, languages=("python3", "node12"), built=("alpha", "beta")):
    return PushPipeline(
        fetcher=FakeFetcher("widgets", files),
        builder=FakeBuilder(list(built)),
        template_fetcher=FakeTemplateFetcher(list(languages)),
        gateway=GatewayClient("s3cret", base_url="http://gateway:8080", transport=fake_gateway.transport),
        provider=reporter,
        audit=AuditClient(url=""),
        work_dir=str(tmp_path),
    )


class TestPushPipeline:
    def test_partial_failure(self, tmp_path, push_event, stack_yaml):
        fake_gateway = FakeGateway(rejected_services=["beta"])
        reporter = RecordingReporter()

        result = asyncio.run(_pipeline(tmp_path, fake_gateway, reporter, {"stack.yml": stack_yaml}).run(push_event))

        assert result.attempted == 2
        assert result.failed == ["beta"]
        assert result.deployed == ["alpha"]
        assert "beta" in str(result.error)
        assert reporter.states_for("stack-deploy") == ["pending", "failure"]
        assert reporter.states_for("beta")[-1] == "failure"
        assert reporter.states_for("alpha")[-1] == "success"

    def test_all_deployed(self, tmp_path, push_event, stack_yaml):
        fake_gateway = FakeGateway()
        reporter = RecordingReporter()

        result = asyncio.run(_pipeline(tmp_path, fake_gateway, reporter, {"stack.yml": stack_yaml}).run(push_event))

        assert result.error is None
        assert result.deployed == ["alpha", "beta"]
        assert reporter.states_for("stack-deploy") == ["pending", "success"]
        deploys = fake_gateway.requests_to("/function/buildshiprun")
        assert [r.headers["Service"] for r in deploys] == ["alpha", "beta"]
        assert deploys[0].headers["Image"] == (
            f"registry.example.com/acme/widgets-alpha:latest-master-{push_event.after_commit_id[:7]}"
        )
        assert len(fake_gateway.requests_to("/function/garbage-collect")) == 1
        assert fake_gateway.requests_to("/function/import-secrets") == []

    def test_secrets_imported_when_present(self, tmp_path, push_event, stack_yaml):
        fake_gateway = FakeGateway()
        files = {"stack.yml": stack_yaml, "secrets.yml": "kind: SealedSecret\n"}

        asyncio.run(_pipeline(tmp_path, fake_gateway, RecordingReporter(), files).run(push_event))

        assert len(fake_gateway.requests_to("/function/import-secrets")) == 1

    def test_packaging_failure_counted(self, tmp_path, push_event, stack_yaml):
        fake_gateway = FakeGateway()
        reporter = RecordingReporter()
        pipeline = _pipeline(tmp_path, fake_gateway, reporter, {"stack.yml": stack_yaml}, built=("beta",))

        result = asyncio.run(pipeline.run(push_event))

        assert result.attempted == 2
        assert result.failed == ["alpha"]
        assert reporter.states_for("alpha") == ["failure"]
        assert [r.headers["Service"] for r in fake_gateway.requests_to("/function/buildshiprun")] == ["beta"]

    def test_garbage_collect_failure_tolerated(self, tmp_path, push_event, stack_yaml):
        fake_gateway = FakeGateway(responses={"/function/garbage-collect": 500})
        result = asyncio.run(
            _pipeline(tmp_path, fake_gateway, RecordingReporter(), {"stack.yml": stack_yaml}).run(push_event)
        )
        assert result.error is None


class TestPushPipelineAborts:
    def test_missing_stack_file(self, tmp_path, push_event):
        fake_gateway = FakeGateway()
        reporter = RecordingReporter()

        with pytest.raises(ManifestError):
            asyncio.run(_pipeline(tmp_path, fake_gateway, reporter, {"README.md": "hi"}).run(push_event))

        assert reporter.states_for("stack-deploy") == ["pending", "failure"]
        assert fake_gateway.requests_to("/function/buildshiprun") == []

    def test_unsupported_language(self, tmp_path, push_event, stack_yaml):
        fake_gateway = FakeGateway()
        reporter = RecordingReporter()
        pipeline = _pipeline(tmp_path, fake_gateway, reporter, {"stack.yml": stack_yaml}, languages=("go",))

        with pytest.raises(TemplateError, match="node12"):
            asyncio.run(pipeline.run(push_event))

        assert reporter.states_for("stack-deploy") == ["pending", "failure"]
        assert fake_gateway.requests == []

    def test_missing_identity_has_no_side_effects(self, tmp_path, stack_yaml):
        fake_gateway = FakeGateway()
        reporter = RecordingReporter()
        pipeline = _pipeline(tmp_path, fake_gateway, reporter, {"stack.yml": stack_yaml})

        with pytest.raises(ConfigurationError):
            asyncio.run(pipeline.run(make_push_event(name="")))

        assert reporter.reported == []
        assert pipeline.fetcher.calls == []
