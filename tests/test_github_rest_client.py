import json
from dataclasses import dataclass
from typing import Any

import pytest
import requests

from trackerops.github_rest import GitHubAPIError, GitHubRestClient


@dataclass
class _DummyResponse:
    status_code: int
    payload: Any

    def json(self) -> Any:
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload

    @property
    def text(self) -> str:
        payload = self.payload
        if payload is None:
            return ""
        if isinstance(payload, (dict, list)):
            return json.dumps(payload)
        return str(payload)


class _DummySession:
    def __init__(self, responses: list[Any]):
        self._responses = responses
        self.request_log: list[tuple[str, str, dict[str, Any]]] = []
        self.headers: dict[str, str] = {}
        self.closed = False

    def request(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str],
        json: Any | None = None,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> _DummyResponse:
        self.request_log.append(
            (method, url, {"headers": headers, "json": json, "params": dict(params or {})})
        )
        if not self._responses:
            raise AssertionError("No response queued for request")
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def close(self) -> None:
        self.closed = True


def _client(session: _DummySession) -> GitHubRestClient:
    return GitHubRestClient(token="tkn", repo="acme/widgets", session=session)  # type: ignore[arg-type]


def test_rest_client_sets_auth_headers():
    session = _DummySession([])
    _client(session)

    assert session.headers["Authorization"] == "Bearer tkn"
    assert session.headers["Accept"] == "application/vnd.github+json"


def test_list_milestones_fetches_single_page():
    session = _DummySession([_DummyResponse(200, [{"number": 1, "title": "M1"}, "junk"])])
    client = _client(session)

    items = client.list_milestones(state="open", page=3, per_page=50)

    assert items == [{"number": 1, "title": "M1"}]
    method, url, meta = session.request_log[0]
    assert method == "GET"
    assert url == "https://api.github.com/repos/acme/widgets/milestones"
    assert meta["params"] == {"state": "open", "page": 3, "per_page": 50}


def test_update_milestone_sends_patch_payload():
    session = _DummySession([_DummyResponse(200, {"number": 4})])
    client = _client(session)

    client.update_milestone(number=4, title="M4", description="## Focus\nx\n\n")

    method, url, meta = session.request_log[0]
    assert method == "PATCH"
    assert url.endswith("/repos/acme/widgets/milestones/4")
    assert meta["json"] == {"title": "M4", "description": "## Focus\nx\n\n"}


def test_rest_client_raises_on_error_status():
    session = _DummySession([_DummyResponse(500, {"message": "boom"})])
    client = _client(session)

    with pytest.raises(GitHubAPIError) as excinfo:
        client.list_milestones()

    assert excinfo.value.status == 500
    assert "boom" in (excinfo.value.response_text or "")


def test_rest_client_wraps_transport_errors_without_retry():
    session = _DummySession([requests.ConnectionError("connection reset")])
    client = _client(session)

    with pytest.raises(GitHubAPIError) as excinfo:
        client.get_authenticated_user()

    assert excinfo.value.status is None
    assert len(session.request_log) == 1


def test_list_labels_paginates_until_short_page():
    full = [{"name": f"l{i}", "color": "ffffff"} for i in range(100)]
    session = _DummySession(
        [_DummyResponse(200, full), _DummyResponse(200, [{"name": "last", "color": "000000"}])]
    )
    client = _client(session)

    labels = client.list_labels()

    assert len(labels) == 101
    assert [entry[2]["params"]["page"] for entry in session.request_log] == [1, 2]


def test_list_issues_filters_pull_requests():
    session = _DummySession(
        [
            _DummyResponse(
                200,
                [{"number": 1}, {"number": 2, "pull_request": {"url": "x"}}],
            )
        ]
    )
    client = _client(session)

    issues = client.list_issues(state="open", milestone=3, labels=["bug", "ui"])

    assert [i["number"] for i in issues] == [1]
    params = session.request_log[0][2]["params"]
    assert params["milestone"] == 3
    assert params["labels"] == "bug,ui"


def test_create_issue_includes_milestone_number():
    session = _DummySession([_DummyResponse(201, {"number": 321})])
    client = _client(session)

    number = client.create_issue(title="Demo", body="Body", labels=["bug"], milestone=7)

    assert number == 321
    assert session.request_log[0][2]["json"] == {
        "title": "Demo",
        "body": "Body",
        "labels": ["bug"],
        "milestone": 7,
    }


def test_update_label_quotes_name():
    session = _DummySession([_DummyResponse(200, {})])
    client = _client(session)

    client.update_label(name="type:bug fix", new_name="type:bug", color="d73a4a")

    url = session.request_log[0][1]
    assert url.endswith("/labels/type%3Abug%20fix")
    assert session.request_log[0][2]["json"] == {"new_name": "type:bug", "color": "d73a4a"}


def test_replace_issue_label_adds_then_removes():
    session = _DummySession([_DummyResponse(200, []), _DummyResponse(200, [])])
    client = _client(session)

    client.replace_issue_label(number=9, old="bug", new="type:bug")

    assert [entry[0] for entry in session.request_log] == ["POST", "DELETE"]
    assert session.request_log[0][2]["json"] == {"labels": ["type:bug"]}
    assert session.request_log[1][1].endswith("/issues/9/labels/bug")


def test_empty_body_returns_none_and_context_manager_closes():
    session = _DummySession([_DummyResponse(204, None)])

    with _client(session) as client:
        client.delete_label(name="stale")

    assert session.closed is True
