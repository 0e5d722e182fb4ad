import sqlite3

import pytest
from fastapi.testclient import TestClient

from conftest import USER, ScriptedGenerator
from notewright.api.server import app
from notewright.core.errors import ProviderError
from notewright.memory import db, repository

HEADERS = {"X-User-Id": USER}


@pytest.fixture
def client(services):
    app.state.services = services
    try:
        yield TestClient(app)
    finally:
        delattr(app.state, "services")


@pytest.fixture
def failing_client(make_services):
    app.state.services = make_services(generator=ScriptedGenerator([ProviderError("provider down")]))
    try:
        yield TestClient(app)
    finally:
        delattr(app.state, "services")


def _start(client, target_length=2000):
    theme = client.post(
        "/themes", json={"title": "Learning chess", "description": "At forty"}, headers=HEADERS,
    ).json()
    client.post(f"/themes/{theme['id']}/memos", json={"content": "Lost every game in March"}, headers=HEADERS)
    state = client.post(
        "/interviews", json={"themeId": theme["id"], "targetLength": target_length}, headers=HEADERS,
    ).json()
    return theme, state


def test_health(client) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["generator"] == "offline"
    assert body["interviewPrompt"] == "v2"


def test_interview_turn_stateless(client) -> None:
    response = client.post("/interview-turn", json={"themeTitle": "Learning chess", "memos": [], "messages": []})
    assert response.status_code == 200
    body = response.json()
    assert "Learning chess" in body["content"]
    assert "READINESS" not in body["content"]
    assert body["readiness"] == 0
    assert body["readinessDisplay"] == 0


def test_interview_turn_skip_counts_as_no_answer(client) -> None:
    messages = [
        {"role": "assistant", "content": "Why chess?"},
        {"role": "user", "content": "My daughter plays."},
        {"role": "assistant", "content": "Do you have an example?"},
    ]
    response = client.post(
        "/interview-turn", json={"themeTitle": "Learning chess", "messages": messages, "isSkip": True},
    )
    assert response.status_code == 200
    assert response.json()["readiness"] == 16
    assert response.json()["readinessDisplay"] == 20


def test_interview_turn_schema_errors_are_400(client) -> None:
    response = client.post("/interview-turn", json={"messages": []})
    assert response.status_code == 400
    assert "themeTitle" in response.json()["error"]

    response = client.post(
        "/interview-turn", json={"themeTitle": "x", "messages": [{"role": "system", "content": "hi"}]},
    )
    assert response.status_code == 400

    response = client.post("/interview-turn", json={"themeTitle": "   "})
    assert response.status_code == 400
    assert "error" in response.json()


def test_generate_article_stateless(client) -> None:
    response = client.post("/generate-article", json={
        "themeTitle": "Learning chess",
        "messages": [
            {"role": "assistant", "content": "Why chess?"},
            {"role": "user", "content": "My daughter beat me twice."},
        ],
        "targetLength": 1500,
        "writingStyle": "plain",
    })
    assert response.status_code == 200
    body = response.json()
    assert body["title"] == "Thoughts on Learning chess"
    assert "My daughter beat me twice." in body["content"]


def test_generate_article_validation(client) -> None:
    base = {"themeTitle": "Chess", "messages": [{"role": "user", "content": "x"}]}
    assert client.post("/generate-article", json={**base, "messages": []}).status_code == 400
    assert client.post("/generate-article", json={**base, "targetLength": 10}).status_code == 400
    assert client.post("/generate-article", json={**base, "writingStyle": "shouty"}).status_code == 400
    response = client.post("/generate-article", json={**base, "styleReferenceId": 1})
    assert response.status_code == 401
    assert response.json() == {"error": "Authentication required."}


def test_generation_failure_is_502(failing_client) -> None:
    response = failing_client.post("/interview-turn", json={"themeTitle": "Chess"})
    assert response.status_code == 502
    assert "error" in response.json()


def test_stateful_routes_need_a_user(client) -> None:
    response = client.get("/themes")
    assert response.status_code == 401
    assert response.json() == {"error": "Authentication required."}


def test_missing_records_are_404(client) -> None:
    response = client.get("/articles/999", headers=HEADERS)
    assert response.status_code == 404
    assert "error" in response.json()


def test_full_interview_flow(client) -> None:
    theme, state = _start(client)
    interview_id = state["interview"]["id"]
    assert [m["role"] for m in state["messages"]] == ["assistant"]
    assert state["canComplete"] is False

    response = client.post(f"/interviews/{interview_id}/complete", json={}, headers=HEADERS)
    assert response.status_code == 409

    state = client.post(
        f"/interviews/{interview_id}/answer", json={"content": "I joined a club downtown."}, headers=HEADERS,
    ).json()
    assert state["readinessDisplay"] == 20
    assert state["stage"] == "intro"
    assert state["canComplete"] is True

    state = client.post(f"/interviews/{interview_id}/skip", headers=HEADERS).json()
    assert [m["role"] for m in state["messages"][-2:]] == ["user", "assistant"]
    assert state["messages"][-2]["content"] == "(Skipped this question)"

    response = client.post(
        f"/interviews/{interview_id}/complete", json={"pronoun": "I", "writingStyle": "plain"}, headers=HEADERS,
    )
    assert response.status_code == 200
    done = response.json()
    assert done["interview"]["status"] == "completed"
    article = done["article"]
    assert article["title"] == "Thoughts on Learning chess"
    assert article["wordCount"] == len(article["content"])

    fetched = client.get(f"/interviews/{interview_id}", headers=HEADERS).json()
    assert fetched["interview"]["status"] == "completed"
    assert fetched["canComplete"] is False

    response = client.post(f"/interviews/{interview_id}/answer", json={"content": "late"}, headers=HEADERS)
    assert response.status_code == 409

    listed = client.get(f"/themes/{theme['id']}/articles", headers=HEADERS).json()
    assert [a["id"] for a in listed] == [article["id"]]


def test_edit_history_and_restore(client) -> None:
    _, state = _start(client)
    interview_id = state["interview"]["id"]
    client.post(f"/interviews/{interview_id}/answer", json={"content": "Openings first."}, headers=HEADERS)
    article = client.post(f"/interviews/{interview_id}/complete", json={}, headers=HEADERS).json()["article"]
    article_id = article["id"]

    response = client.put(
        f"/articles/{article_id}",
        json={"title": "Chess at forty", "content": "Edited body.", "expectedRevision": article["revision"]},
        headers=HEADERS,
    )
    assert response.status_code == 200
    edited = response.json()
    assert edited["revision"] == article["revision"] + 1
    assert edited["wordCount"] == len("Edited body.")

    stale = client.put(
        f"/articles/{article_id}",
        json={"title": "Other", "content": "Other body.", "expectedRevision": article["revision"]},
        headers=HEADERS,
    )
    assert stale.status_code == 409

    history = client.get(f"/articles/{article_id}/history", headers=HEADERS).json()
    assert [h["editLabel"] for h in history] == ["", "Generated"]
    generated = history[-1]

    restored = client.post(
        f"/articles/{article_id}/restore", json={"historyId": generated["id"]}, headers=HEADERS,
    ).json()
    assert restored["content"] == article["content"]

    history = client.get(f"/articles/{article_id}/history", headers=HEADERS).json()
    assert history[0]["editLabel"] == "Backup before restore"
    assert history[0]["content"] == "Edited body."
    assert len(history) == 3


def test_rewrite_article(client) -> None:
    _, state = _start(client)
    interview_id = state["interview"]["id"]
    client.post(f"/interviews/{interview_id}/answer", json={"content": "Endgames matter."}, headers=HEADERS)
    article = client.post(f"/interviews/{interview_id}/complete", json={}, headers=HEADERS).json()["article"]
    style = client.post(
        "/style-refs", json={"label": "Diary", "sourceText": "Short lines. Plain words."}, headers=HEADERS,
    ).json()

    response = client.post(
        "/rewrite-article", json={"articleId": article["id"], "styleReferenceId": style["id"]}, headers=HEADERS,
    )
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["title"] == article["title"]

    missing = client.post(
        "/rewrite-article", json={"articleId": article["id"], "styleReferenceId": 999}, headers=HEADERS,
    )
    assert missing.status_code == 404


def test_style_reference_default_is_exclusive(client) -> None:
    first = client.post(
        "/style-refs", json={"label": "A", "sourceText": "aaa", "isDefault": True}, headers=HEADERS,
    ).json()
    client.post("/style-refs", json={"label": "B", "sourceText": "bbb", "isDefault": True}, headers=HEADERS)

    styles = client.get("/style-refs", headers=HEADERS).json()
    assert [s["label"] for s in styles if s["isDefault"]] == ["B"]

    client.put(
        f"/style-refs/{first['id']}", json={"label": "A", "sourceText": "aaa", "isDefault": True}, headers=HEADERS,
    )
    styles = client.get("/style-refs", headers=HEADERS).json()
    assert [s["label"] for s in styles if s["isDefault"]] == ["A"]


def test_theme_crud_and_cascade(client) -> None:
    theme, state = _start(client)
    response = client.put(
        f"/themes/{theme['id']}", json={"title": "Chess", "description": ""}, headers=HEADERS,
    )
    assert response.json()["title"] == "Chess"
    assert len(client.get(f"/themes/{theme['id']}/memos", headers=HEADERS).json()) == 1

    assert client.delete(f"/themes/{theme['id']}", headers=HEADERS).status_code == 204
    assert client.get(f"/themes/{theme['id']}", headers=HEADERS).status_code == 404
    assert client.get(f"/interviews/{state['interview']['id']}", headers=HEADERS).status_code == 404


def test_theme_title_too_long(client) -> None:
    response = client.post("/themes", json={"title": "x" * 101}, headers=HEADERS)
    assert response.status_code == 400


def test_article_refs_routes(client) -> None:
    _, state = _start(client)
    interview_id = state["interview"]["id"]
    client.post(f"/interviews/{interview_id}/answer", json={"content": "Part one."}, headers=HEADERS)
    article = client.post(f"/interviews/{interview_id}/complete", json={}, headers=HEADERS).json()["article"]
    sequel = client.post("/themes", json={"title": "Chess, year two"}, headers=HEADERS).json()

    ref = client.post(f"/themes/{sequel['id']}/refs", json={"articleId": article["id"]}, headers=HEADERS)
    assert ref.status_code == 201
    assert ref.json()["articleTitle"] == article["title"]

    dup = client.post(f"/themes/{sequel['id']}/refs", json={"articleId": article["id"]}, headers=HEADERS)
    assert dup.status_code == 400

    assert client.delete(f"/refs/{ref.json()['id']}", headers=HEADERS).status_code == 204
    assert client.get(f"/themes/{sequel['id']}/refs", headers=HEADERS).json() == []


def test_prompt_versions(client) -> None:
    response = client.get("/prompt-versions/writing")
    assert response.status_code == 200
    body = response.json()
    assert body["current"] == "v2"
    assert [v["id"] for v in body["versions"]] == ["v2", "v1"]
    assert [v["isCurrent"] for v in body["versions"]] == [True, False]

    assert client.get("/prompt-versions/summary").status_code == 404


def test_pinned_registry_is_served(make_services) -> None:
    from notewright.prompts.registry import DEFAULT_REGISTRY, registry_from_pins

    pinned = make_services(registry=registry_from_pins(DEFAULT_REGISTRY, interview_version="v1"))
    app.state.services = pinned
    try:
        client = TestClient(app)
        assert client.get("/prompt-versions/interview").json()["current"] == "v1"
        assert client.get("/health").json()["interviewPrompt"] == "v1"
    finally:
        delattr(app.state, "services")


class ConfiguredGenerator(ScriptedGenerator):
    name = "configured"

    def runtime_config(self):
        return {"generator": self.name, "openai_model": "test-model"}


def test_health_reports_generator_runtime(make_services) -> None:
    app.state.services = make_services(generator=ConfiguredGenerator(["unused"]))
    try:
        body = TestClient(app).get("/health").json()
    finally:
        delattr(app.state, "services")
    assert body["generator"] == "configured"
    assert body["runtime"] == {"generator": "configured", "openai_model": "test-model"}


def test_memos_sent_as_objects_or_strings(make_services) -> None:
    gen = ScriptedGenerator(["Why chess?\n<<READINESS:0>>", "# Opening moves\n\nA body about chess."])
    app.state.services = make_services(generator=gen)
    try:
        client = TestClient(app)
        response = client.post("/interview-turn", json={
            "themeTitle": "Learning chess",
            "memos": [{"content": "Lost every game in March"}, "Bought a clock"],
            "messages": [],
        })
        assert response.status_code == 200

        response = client.post("/generate-article", json={
            "themeTitle": "Learning chess",
            "memos": [{"content": "Lost every game in March"}],
            "messages": [
                {"role": "assistant", "content": "Why chess?"},
                {"role": "user", "content": "My daughter beat me."},
            ],
        })
        assert response.status_code == 200
    finally:
        delattr(app.state, "services")

    assert gen.requests[0].context.memos == ("Lost every game in March", "Bought a clock")
    assert gen.requests[1].context.memos == ("Lost every game in March",)


def test_legacy_writing_style_names(client) -> None:
    base = {"themeTitle": "Chess", "messages": [{"role": "user", "content": "x"}]}
    assert client.post("/generate-article", json={**base, "writingStyle": "desu_masu"}).status_code == 200
    assert client.post("/generate-article", json={**base, "writingStyle": "da_dearu"}).status_code == 200


def test_close_interview_without_article(client) -> None:
    theme, state = _start(client)
    interview_id = state["interview"]["id"]

    response = client.post(f"/interviews/{interview_id}/close", headers=HEADERS)
    assert response.status_code == 200
    assert response.json()["status"] == "completed"
    assert client.get(f"/themes/{theme['id']}/articles", headers=HEADERS).json() == []

    response = client.post(f"/interviews/{interview_id}/close", headers=HEADERS)
    assert response.status_code == 409
    response = client.post(f"/interviews/{interview_id}/answer", json={"content": "late"}, headers=HEADERS)
    assert response.status_code == 409


def test_store_failure_is_503(client, tmp_path, monkeypatch) -> None:
    theme = client.post("/themes", json={"title": "Learning chess"}, headers=HEADERS).json()

    def broken_connection():
        conn = sqlite3.connect(tmp_path / "empty.db")
        conn.row_factory = sqlite3.Row
        return conn

    monkeypatch.setattr(db, "get_connection", broken_connection)
    response = client.post(f"/themes/{theme['id']}/memos", json={"content": "Never stored"}, headers=HEADERS)
    assert response.status_code == 503
    assert "error" in response.json()

    monkeypatch.undo()
    assert repository.list_memos(USER, theme["id"]) == []
