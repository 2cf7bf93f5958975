import hashlib
import hmac
import json

import pytest

from droidprep.app import create_app
from droidprep.config import TestingConfig
from droidprep.core.dispatcher import DROID_APP_BOT_ID, SECURITY_REVIEW_MARKER
from droidprep.webhooks.handlers import GitHubWebhookHandler

from conftest import FakeGitHub, issue_comment_event, make_inputs, pull_request_event

SECRET = TestingConfig.GITHUB_WEBHOOK_SECRET


def _post(client, event_name, payload, secret=SECRET, delivery="delivery-1"):
    body = json.dumps(payload).encode()
    signature = "sha256=" + hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return client.post(
        "/api/webhooks/github",
        data=body,
        content_type="application/json",
        headers={
            "X-GitHub-Event": event_name,
            "X-GitHub-Delivery": delivery,
            "X-Hub-Signature-256": signature,
        },
    )


@pytest.fixture
def github():
    return FakeGitHub()


@pytest.fixture
def client(github):
    app = create_app(TestingConfig, inputs=make_inputs(), github=github)
    return app.test_client()


def test_health(client):
    response = client.get("/api/webhooks/health")
    assert response.status_code == 200
    assert response.get_json() == {"status": "healthy", "services": ["github"]}


def test_metrics_endpoint(client):
    response = client.get("/api/metrics")
    assert response.status_code == 200
    assert b"droidprep_webhook_requests_total" in response.data


def test_ping(client):
    response = _post(client, "ping", {"zen": "Keep it logically awesome."})
    assert response.status_code == 200
    assert response.get_json()["message"] == "Webhook configured successfully"


def test_bad_signature_is_rejected(client):
    raw = issue_comment_event("@droid review")
    response = _post(client, "issue_comment", raw.payload, secret="wrong-secret")
    assert response.status_code == 401


def test_missing_signature_is_rejected(client):
    response = client.post(
        "/api/webhooks/github",
        json={"zen": "hi"},
        headers={"X-GitHub-Event": "ping"},
    )
    assert response.status_code == 401


def test_unknown_service(client):
    response = client.post("/api/webhooks/gitlab", json={}, headers={"X-GitHub-Event": "ping"})
    assert response.status_code == 400


def test_unsupported_event(client):
    response = _post(client, "push", {"ref": "refs/heads/main"})
    assert response.status_code == 400


def test_triage_reports_review(client, github):
    raw = issue_comment_event("@droid review")
    response = _post(client, "issue_comment", raw.payload)

    assert response.status_code == 200
    data = response.get_json()
    assert data["status"] == "triggered"
    assert data["mode"] == "review"
    assert data["command"] == "review"
    assert data["run_code_review"] is True
    assert data["run_security_review"] is False
    assert data["delivery_id"] == "delivery-1"
    assert github.created_comments == []


def test_triage_ignores_untriggered_event(client):
    raw = issue_comment_event("lgtm")
    data = _post(client, "issue_comment", raw.payload).get_json()
    assert data["status"] == "ignored"
    assert data["triggered"] is False


def test_triage_checks_prior_security_review(github):
    github.issue_comments = [
        {"user": {"id": DROID_APP_BOT_ID, "login": "droid[bot]", "type": "Bot"}, "body": SECURITY_REVIEW_MARKER}
    ]
    app = create_app(TestingConfig, inputs=make_inputs(automatic_security_review=True), github=github)
    data = _post(app.test_client(), "pull_request", pull_request_event().payload).get_json()

    assert data["mode"] == "skip"
    assert data["reason"] == "security_review_exists"
    assert data["prior_security_review"] == "checked"


def test_malformed_payload_is_bad_request(client):
    response = _post(client, "issue_comment", {"action": "created", "repository": {}})
    assert response.status_code == 400
    assert "error" in response.get_json()


def test_automatic_review_ignores_plain_issues():
    app = create_app(TestingConfig, inputs=make_inputs(automatic_review=True), github=FakeGitHub())
    raw = issue_comment_event("@droid", is_pr=False)
    response = _post(app.test_client(), "issue_comment", raw.payload)
    assert response.status_code == 200
    assert response.get_json()["status"] == "ignored"


def test_handler_reads_event_header_in_any_case():
    handler = GitHubWebhookHandler(
        {"X-Github-Event": "issue_comment", "x-github-delivery": "abc"},
        issue_comment_event("@droid").payload,
    )
    assert handler.validate_event_type() == "issue_comment"
    assert handler.delivery_id == "abc"
    assert handler.standardize_event().event_name == "issue_comment"


def test_lowercase_event_header_is_triaged(client):
    raw = issue_comment_event("@droid review")
    body = json.dumps(raw.payload).encode()
    signature = "sha256=" + hmac.new(SECRET.encode(), body, hashlib.sha256).hexdigest()
    response = client.post(
        "/api/webhooks/github",
        data=body,
        content_type="application/json",
        headers={"x-github-event": "issue_comment", "x-hub-signature-256": signature},
    )
    assert response.get_json()["status"] == "triggered"
