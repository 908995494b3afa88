"""Unit tests for the KServe runtime wrapper."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

pytest.importorskip("kserve")

from langchain_core.messages import AIMessage  # noqa: E402

from docchat.agent.orchestrator import ChatOrchestrator  # noqa: E402
from docchat.agent.state import ChatResult  # noqa: E402
from docchat.errors import ValidationError  # noqa: E402
from docchat.serving.kserve_runtime import DocChatModel  # noqa: E402
from tests.fakes import ScriptedChatModel  # noqa: E402


def _model(orchestrator: MagicMock) -> DocChatModel:
    services = MagicMock()
    services.orchestrator = orchestrator
    return DocChatModel(services=services)


def test_ready_when_services_injected() -> None:
    assert _model(MagicMock()).ready is True


def test_predict_runs_each_instance() -> None:
    orchestrator = MagicMock()
    orchestrator.chat.return_value = ChatResult(answer="30 days (terms.pdf)", tools_used=["search_documents"])

    out = _model(orchestrator).predict(
        {"instances": [{"message": "refunds?", "history": [], "documentId": "doc-1"}]}
    )

    orchestrator.chat.assert_called_once_with("refunds?", [], "doc-1")
    assert out == {
        "predictions": [
            {"success": True, "message": "30 days (terms.pdf)", "toolsUsed": ["search_documents"]}
        ]
    }


def test_failed_instance_does_not_abort_batch() -> None:
    orchestrator = MagicMock()
    orchestrator.chat.side_effect = [
        ValidationError("message & documentId required"),
        ChatResult(answer="ok", tools_used=[]),
    ]

    out = _model(orchestrator).predict({"instances": [{"message": ""}, {"message": "hi", "documentId": "d"}]})

    assert out["predictions"][0] == {"success": False, "error": "message & documentId required"}
    assert out["predictions"][1]["success"] is True


def test_malformed_instances_are_reported_per_instance() -> None:
    llm = ScriptedChatModel([AIMessage(content="ok")])
    model = _model(ChatOrchestrator(llm, MagicMock()))

    out = model.predict(
        {
            "instances": [
                {"message": "hi", "history": ["oops"], "documentId": "d"},
                "not an object",
                {"message": 42, "documentId": "d"},
                {"message": "hi", "history": [], "documentId": "d"},
            ]
        }
    )

    predictions = out["predictions"]
    assert [p["success"] for p in predictions] == [False, False, False, True]
    assert predictions[0]["error"] == "history[0] must be an object with role and content"
    assert predictions[1]["error"] == "Each instance must be a JSON object"
    assert predictions[2]["error"] == "message & documentId required"
    assert predictions[3]["message"] == "ok"
    assert len(llm.calls) == 1


def test_unexpected_error_does_not_abort_batch() -> None:
    orchestrator = MagicMock()
    orchestrator.chat.side_effect = [AttributeError("'str' object has no attribute 'get'"), ChatResult(answer="ok", tools_used=[])]

    out = _model(orchestrator).predict({"instances": [{"message": "a"}, {"message": "b", "documentId": "d"}]})

    assert out["predictions"][0] == {"success": False, "error": "Internal server error"}
    assert out["predictions"][1]["success"] is True
