"""HTTP 接口测试：健康检查、技能目录、消息调用、提示词注入与创作者技能管理。"""

import pytest
from fastapi.testclient import TestClient

from agentskills.config import get_settings


@pytest.fixture
def client(tmp_path, monkeypatch):
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("CREATOR_SKILLS_PATH", str(tmp_path / "creator-skills.json"))
    monkeypatch.delenv("HOST_BASE_URL", raising=False)
    get_settings.cache_clear()
    from agentskills.main import app

    with TestClient(app) as test_client:
        yield test_client
    get_settings.cache_clear()


def _engine():
    from agentskills.application.container import get_engine

    return get_engine()


def test_health_endpoints_and_request_id(client) -> None:
    response = client.get("/health", headers={"X-Request-Id": "req-1"})
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert response.headers["X-Request-Id"] == "req-1"

    body = client.get("/healthz").json()
    assert body["status"] == "ok"
    assert "send_message" in body["missing_host_capabilities"]


def test_skill_catalog(client) -> None:
    engine = _engine()
    engine.register({"name": "hello", "description": "greets", "action": lambda ctx: "hi"})
    engine.register({"name": "off", "enabled": False})

    assert client.get("/api/v1/skills").json() == [{"name": "hello", "description": "greets", "enabled": True}]
    assert len(client.get("/api/v1/skills", params={"include_disabled": True}).json()) == 2
    assert client.get("/api/v1/skills/hello").json()["name"] == "hello"
    assert client.get("/api/v1/skills/ghost").status_code == 404


def test_post_message_waits_for_outcome(client) -> None:
    """wait=true 时返回本次调用的终态。"""
    _engine().register({"name": "hello", "action": lambda ctx: f"Hello, {ctx.args['name']}!"})

    response = client.post("/api/v1/messages", json={"text": '[CALL: hello({"name":"Ann"})]', "wait": True})
    assert response.status_code == 200
    body = response.json()
    assert body["detected"] is True
    assert body["skill_name"] == "hello"
    assert body["outcome"]["status"] == "succeeded"
    assert body["outcome"]["payload"] == "Hello, Ann!"
    # 未配置宿主时无法续写。
    assert body["outcome"]["continued"] is False
    assert body["call_id"] == body["outcome"]["call_id"]


def test_post_message_variants(client) -> None:
    no_tag = client.post("/api/v1/messages", json={"text": "just chatting"}).json()
    assert no_tag == {"detected": False, "queued": False, "skill_name": None, "call_id": None, "outcome": None}

    ghost = client.post("/api/v1/messages", json={"data": {"mes": "[CALL: ghost]"}, "wait": True}).json()
    assert ghost["outcome"]["status"] == "not_found"
    assert ghost["outcome"]["message"] == 'Skill call failed: "ghost" is not registered or not enabled.'

    queued = client.post("/api/v1/messages", json={"text": "[CALL: ghost]"}).json()
    assert queued["queued"] is True
    assert queued["outcome"] is None


def test_prompt_injection_endpoint(client) -> None:
    _engine().register({"name": "calc", "description": "math"})
    payload = {"messages": [{"role": "user", "content": "2+2?"}]}
    body = client.post("/api/v1/prompt/inject", json=payload).json()
    assert body["injected"] is True
    messages = body["data"]["messages"]
    assert messages[0]["content"].endswith("Skills: calc")
    assert messages[-1]["role"] == "system"


def test_creator_skill_lifecycle(client) -> None:
    """保存后立即可调用，删除后从注册中心消失。"""
    saved = client.post("/api/v1/creator-skills", json={"name": "greet", "static_text": "Hi {{name}}"})
    assert saved.status_code == 200
    assert saved.json()["registered"] == ["greet"]

    outcome = client.post("/api/v1/messages", json={"text": "[CALL: greet(name=Bo)]", "wait": True}).json()["outcome"]
    assert outcome["payload"] == "Hi Bo"

    listed = client.get("/api/v1/creator-skills").json()
    assert [item["name"] for item in listed["skills"]] == ["greet"]

    assert client.post("/api/v1/creator-skills", json={"description": "nameless"}).status_code == 400
    assert client.put("/api/v1/creator-skills", json={"name": "not a list"}).status_code == 400

    imported = client.put("/api/v1/creator-skills", json=[{"name": "a"}, {"name": "b"}]).json()
    assert imported == {"saved": 2, "registered": ["a", "b"]}
    assert _engine().registry.get("greet") is None

    assert client.delete("/api/v1/creator-skills/a").json()["registered"] == ["b"]
    assert client.delete("/api/v1/creator-skills/a").status_code == 404

    reloaded = client.post("/api/v1/creator-skills/reload").json()
    assert reloaded == {"loaded": 1, "registered": ["b"]}


def test_startup_writes_api_log(client, tmp_path) -> None:
    """启动后 api 角色的日志文件应已创建。"""
    client.get("/health")
    assert (tmp_path / "logs" / "api" / "agentskills.jsonl").exists()
