"""HTTP surface of the router."""

import pytest
from fastapi.testclient import TestClient

from conversation_router.api import create_app
from conversation_router.interview_agent import OnboardingInterviewEngine
from conversation_router.router import FlowRouter
from conversation_router.task_store import InMemoryTaskStore
from conversation_router.triggers import INTERVIEW_TRIGGER


@pytest.fixture
def http(router):
    return TestClient(create_app(router=router))


@pytest.fixture
def offline_http(task_store, session_store):
    router = FlowRouter(
        sessions=session_store,
        tasks=task_store,
        interview_engine=OnboardingInterviewEngine(),
    )
    return TestClient(create_app(router=router))


class TestChat:
    def test_health(self, http):
        assert http.get("/health").json() == {"status": "ok"}

    def test_reset_returns_greeting_and_actions(self, http):
        body = http.post("/sessions/web/reset").json()
        assert body["responseText"] == "Hello! What would you like to work on today?"
        assert body["status"] == "awaiting_choice"
        assert [action["label"] for action in body["actions"]] == [
            "Onboarding",
            "Create Product",
        ]

    def test_chat_runs_interview_and_exposes_task(self, http):
        for message in (INTERVIEW_TRIGGER, "Alice", "grow", "Email", "No"):
            body = http.post(
                "/chat",
                json={"message": message, "channel": "Chat", "sessionId": "web"},
            ).json()
        assert body["status"] == "completed"

        tasks = http.get("/tasks").json()
        assert len(tasks) == 1
        assert tasks[0]["priority"] == "high"
        assert tasks[0]["completed"] is False

    def test_unknown_channel_is_rejected(self, http):
        response = http.post("/chat", json={"message": "hi", "channel": "fax"})
        assert response.status_code == 422


class TestTaskEndpoints:
    def test_patch_task(self, http, task_store):
        task = task_store.add("Set up a Stripe account", "high")

        response = http.patch(f"/tasks/{task.id}", json={"completed": True})

        assert response.status_code == 200
        assert response.json()["completed"] is True
        assert response.json()["description"] == "Set up a Stripe account"

    def test_patch_unknown_task_is_404(self, http):
        response = http.patch("/tasks/task_missing", json={"completed": True})
        assert response.status_code == 404

    def test_patch_rejects_unknown_fields(self, http, task_store):
        task = task_store.add("Set up", "high")
        response = http.patch(f"/tasks/{task.id}", json={"owner": "bob"})
        assert response.status_code == 422

    def test_task_vanishing_after_update_is_404(self, session_store):
        class VanishingStore(InMemoryTaskStore):
            def get(self, task_id):
                return None

        store = VanishingStore()
        task = store.add("Set up", "high")
        router = FlowRouter(
            sessions=session_store,
            tasks=store,
            interview_engine=OnboardingInterviewEngine(),
        )
        http = TestClient(create_app(router=router))

        response = http.patch(f"/tasks/{task.id}", json={"completed": True})

        assert response.status_code == 404


class TestChannelEndpoints:
    def test_email_starts_interview_in_sender_session(self, http, session_store):
        body = http.post(
            "/channels/email",
            json={
                "from": "alice@example.com",
                "to": "hello@example.com",
                "subject": "",
                "body": INTERVIEW_TRIGGER,
            },
        ).json()

        assert body["responseText"] == "What is your name?"
        assert len(session_store.get("alice@example.com").history) == 1

    def test_whatsapp_message_reaches_router(self, http, client):
        client.queue(
            {"intent": "greet", "entities": {}, "channel": "whatsapp"},
            {
                "sentiment": "neutral",
                "isSpam": True,
                "topic": "other",
                "priority": "low",
                "routeToAgent": "Sales",
            },
        )

        body = http.post(
            "/channels/whatsapp",
            json={"from": "+15550001", "body": "buy cheap watches"},
        ).json()

        assert body["responseText"] == (
            "This message appears to be spam and has been discarded."
        )
        assert "whatsapp" in client.calls[0][-1].content

    def test_voice_uses_injected_transcriber(self, router, session_store):
        async def transcriber(audio):
            return INTERVIEW_TRIGGER

        http = TestClient(create_app(router=router, transcriber=transcriber))

        body = http.post(
            "/channels/voice?sessionId=caller",
            content=b"\x00\x01\x02",
        ).json()

        assert body["responseText"] == "What is your name?"
        assert len(session_store.get("caller").history) == 1

    def test_empty_voice_payload_is_rejected(self, http):
        assert http.post("/channels/voice", content=b"").status_code == 422


class TestReportEndpoints:
    def test_report_summarises_then_replies(self, http, client):
        client.queue(
            {"summary": "Created one task."},
            {"response": "All set, I've added a task for you."},
        )

        body = http.post("/reports", json={"actions": "add-task: Set up Stripe"}).json()

        assert body == {
            "summary": "Created one task.",
            "response": "All set, I've added a task for you.",
        }
        assert "Created one task." in client.calls[1][-1].content

    def test_sub_agent_prompts(self, http, client):
        client.queue({"prompts": {"Sales": "Pitch the plan.", "Support": "Help."}})

        response = http.post(
            "/sub-agent-prompts",
            json={
                "userRequest": "Upgrade my plan",
                "availableData": "plan=free",
                "subAgentCapabilities": "Sales, Support",
            },
        )

        assert response.status_code == 200
        assert response.json()["prompts"]["Sales"] == "Pitch the plan."

    def test_malformed_stage_output_is_bad_gateway(self, http, client):
        client.queue("no json")
        response = http.post("/reports", json={"actions": "nothing"})
        assert response.status_code == 502

    def test_reports_need_a_model(self, offline_http):
        response = offline_http.post("/reports", json={"actions": "nothing"})
        assert response.status_code == 503
