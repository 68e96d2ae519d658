from unittest.mock import MagicMock

import pytest

from FinDesk.services.assistant.assistant import AssistantError, get_assistant_service


@pytest.fixture
def service(override):
    service = MagicMock()
    override(get_assistant_service, service)
    return service


def test_proxy_requires_parameters(api, service):
    res = api.post("/api/assistant", json={"query": "Chase rates?", "userId": "u1"})
    assert res.status_code == 400
    assert res.json() == {"error": "Missing required parameters"}
    service.send_message.assert_not_called()


def test_proxy_rejects_wrong_types_before_the_parameter_check(api, service):
    res = api.post("/api/assistant", json={"query": 5, "userId": "u1", "assistantId": "asst_1"})
    assert res.status_code == 422
    service.send_message.assert_not_called()


def test_proxy_returns_reply(api, service):
    service.send_message.return_value = "Chase tier 1 is 5.49% at 72 months."
    res = api.post(
        "/api/assistant",
        json={"query": "Chase rates?", "userId": "u1", "assistantId": "asst_1", "vectorStoreId": "vs_1"},
    )
    assert res.status_code == 200
    assert res.json() == {"response": "Chase tier 1 is 5.49% at 72 months."}
    service.send_message.assert_called_once_with(
        "u1", "Chase rates?", assistant_id="asst_1", vector_store_id="vs_1"
    )


def test_proxy_hides_failures(api, service):
    service.send_message.side_effect = AssistantError("Run failed with error: boom")
    res = api.post("/api/assistant", json={"query": "q", "userId": "u1", "assistantId": "asst_1"})
    assert res.status_code == 500
    assert res.json() == {"error": "Failed to process request"}


def test_chat_builds_context_from_deals(api, db, service):
    db.collection("deals").add({"userId": "u1", "products": ["VSC"], "profit": 1200, "lender": "Chase"})
    service.send_message_with_context.return_value = "Good month."

    res = api.post("/assistant/chat", json={"userId": "u1", "query": "How am I doing?"})

    assert res.json() == {"response": "Good month."}
    user_id, query, context = service.send_message_with_context.call_args.args
    assert (user_id, query) == ("u1", "How am I doing?")
    assert context["current_month"]["total_deals"] == 1
    assert context["top_lenders"] == [{"name": "Chase", "count": 1}]


def test_chat_passes_supplied_context(api, service):
    service.send_message_with_context.return_value = "ok"
    api.post("/assistant/chat", json={"userId": "u1", "query": "q", "context": {"name": "Dana"}})
    assert service.send_message_with_context.call_args.args[2] == {"name": "Dana"}


def test_chat_maps_assistant_errors(api, service):
    service.send_message_with_context.side_effect = AssistantError("Failed to get response from assistant")
    res = api.post("/assistant/chat", json={"userId": "u1", "query": "q", "context": {}})
    assert res.status_code == 502
    assert res.json()["detail"] == "Failed to get response from assistant"


def test_thread_reset(api, service):
    assert api.post("/assistant/thread/reset", json={"userId": "u1"}).json() == {"reset": True}
    service.clear_thread.assert_called_once_with("u1")


def test_initialize_route(api, service):
    service.initialize_assistant.return_value = {"assistantId": "asst_1", "vectorStoreId": "vs_1", "fileIds": ["f1"]}
    res = api.post("/assistant/initialize", json={"userId": "u1"})
    assert res.json() == {"assistantId": "asst_1", "vectorStoreId": "vs_1", "fileIds": ["f1"]}
