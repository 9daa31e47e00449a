"""Tests for GitHub check-run mapping, log formatting and status upserts."""

import asyncio

import pytest

from gitdeploy.core.http_utils import HTTPRequestError
from gitdeploy.models.status import CommitStatus, EventInfo
from gitdeploy.services.checks import (
    GitHubStatusClient,
    build_public_status_url,
    format_log,
    get_check_run_conclusion,
    get_check_run_status,
    get_check_run_summary,
    get_check_run_title,
    truncate,
)
from tests.mocks.github import FakeGitHubAPI

API = "https://api.github.test"


@pytest.fixture
def event_info(push_event):
    return EventInfo.from_push_event(push_event)


def _status(state, context="alpha", description="alpha deployed"):
    return CommitStatus(state=state, description=description, context=context)


class TestCheckRunMapping:
    def test_status(self):
        assert get_check_run_status("pending") == "queued"
        assert get_check_run_status("success") == "completed"
        assert get_check_run_status("failure") == "completed"

    def test_conclusion(self):
        assert get_check_run_conclusion("success") == "success"
        assert get_check_run_conclusion("failure") == "failure"
        assert get_check_run_conclusion("pending") == "neutral"

    def test_title(self):
        assert get_check_run_title(_status("pending", context="stack-deploy")) == "Deploy to OpenFaaS"
        assert get_check_run_title(_status("pending")) == "Build alpha"

    def test_summary_links_completed(self):
        assert get_check_run_summary(_status("success"), "https://x") == "[alpha deployed](https://x)"
        assert get_check_run_summary(_status("pending"), "https://x") == "alpha deployed"


class TestFormatLog:
    def test_short_log_framed(self):
        assert format_log("hello") == "\n```shell\nhello\n```\n"

    def test_never_exceeds_limit(self):
        for size in (0, 10, 99, 100, 101, 500, 5000):
            assert len(format_log("x" * size, max_length=200)) <= 200

    def test_truncation_keeps_tail_and_warns(self):
        logs = "".join(f"line {i}\n" for i in range(1000))
        formatted = format_log(logs, max_length=1000)
        assert formatted.startswith("\n```shell\nWarning: log size")
        assert formatted.endswith("line 999\n\n```\n")
        assert "line 0\n" not in formatted

    def test_tiny_limit_drops_warning(self):
        formatted = format_log("y" * 500, max_length=40)
        assert "Warning" not in formatted
        assert len(formatted) == 40

    def test_truncate(self):
        assert truncate(3, "abcdef") == "def"
        assert truncate(10, "abc") == "abc"
        assert truncate(0, "abc") == ""


class TestPublicStatusUrl:
    def test_success_links_to_function(self, event_info):
        url = build_public_status_url(_status("success"), event_info, public_url="https://fn.example.com/")
        assert url == "https://fn.example.com/function/acme-alpha"

    def test_stack_success_links_to_gateway(self, event_info):
        url = build_public_status_url(_status("success", "stack-deploy"), event_info, public_url="https://fn.example.com")
        assert url == "https://fn.example.com"

    def test_failure_links_to_repository(self, event_info):
        url = build_public_status_url(_status("failure"), event_info, public_url="https://fn.example.com")
        assert url == "https://github.com/acme/widgets"

    def test_no_public_url(self, event_info):
        assert build_public_status_url(_status("success"), event_info, public_url="") == event_info.url


class TestGitHubStatusClient:
    def test_creates_check_run_when_missing(self, event_info):
        api = FakeGitHubAPI()
        client = GitHubStatusClient("tok", app_id="4242", api_url=API, transport=api.transport)

        asyncio.run(client.report_check(_status("pending"), event_info))

        lookup = api.requests[0]
        assert lookup.method == "GET"
        assert lookup.url.params["check_name"] == "alpha"
        assert lookup.url.params["app_id"] == "4242"
        write = api.writes()[0]
        assert write.method == "POST"
        assert write.url.path == "/repos/acme/widgets/check-runs"
        body = FakeGitHubAPI.body(write)
        assert body["name"] == "alpha"
        assert body["head_sha"] == event_info.sha
        assert body["status"] == "queued"
        assert "conclusion" not in body
        assert write.headers["Authorization"] == "Bearer tok"

    def test_updates_existing_check_run(self, event_info):
        api = FakeGitHubAPI(existing_check_runs={"alpha": 991})
        client = GitHubStatusClient("tok", app_id="4242", api_url=API, transport=api.transport)

        asyncio.run(client.report_check(_status("failure"), event_info, logs="boom"))

        write = api.writes()[0]
        assert write.method == "PATCH"
        assert write.url.path == "/repos/acme/widgets/check-runs/991"
        body = FakeGitHubAPI.body(write)
        assert body["status"] == "completed"
        assert body["conclusion"] == "failure"
        assert "completed_at" in body
        assert "boom" in body["output"]["text"]

    def test_flat_status(self, event_info):
        api = FakeGitHubAPI()
        client = GitHubStatusClient("tok", app_id="4242", api_url=API, transport=api.transport)

        asyncio.run(client.create_status(_status("success", description="d" * 300), event_info))

        write = api.writes()[0]
        assert write.url.path == f"/repos/acme/widgets/statuses/{event_info.sha}"
        body = FakeGitHubAPI.body(write)
        assert body["state"] == "success"
        assert body["context"] == "alpha"
        assert len(body["description"]) == 140

    def test_rejected_write_raises(self, event_info):
        api = FakeGitHubAPI(fail_writes=True)
        client = GitHubStatusClient("tok", app_id="4242", api_url=API, transport=api.transport)

        with pytest.raises(HTTPRequestError) as exc_info:
            asyncio.run(client.create_status(_status("success"), event_info))
        assert exc_info.value.status_code == 422
