"""KServe custom model runtime for the chat orchestrator."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import kserve

from docchat.errors import DocChatError, ValidationError
from docchat.serving.services import Services, build_services

logger = logging.getLogger(__name__)


class DocChatModel(kserve.Model):
    """KServe-compatible model that wraps :class:`ChatOrchestrator`.

    This class implements the ``predict`` interface expected by KServe
    so the chat loop can be deployed as an ``InferenceService``.
    """

    def __init__(self, name: str = "docchat", services: Services | None = None) -> None:
        super().__init__(name)
        self.services = services
        self.ready = services is not None

    def load(self) -> None:
        """Build the service container (called once at startup)."""
        if self.services is None:
            self.services = build_services()
        self.ready = True

    def predict(self, payload: dict[str, Any], headers: dict[str, str] | None = None) -> dict:
        """Run one chat turn per instance.

        Parameters
        ----------
        payload:
            ``{"instances": [{"message": "...", "history": [...], "documentId": "..."}]}``.
        headers:
            Optional HTTP headers.

        Returns
        -------
        dict
            ``{"predictions": [{"success": true, "message": "...", "toolsUsed": [...]}]}``;
            failed instances carry ``{"success": false, "error": "..."}``.
        """
        predictions = []
        for instance in payload.get("instances", []):
            try:
                if not isinstance(instance, Mapping):
                    raise ValidationError("Each instance must be a JSON object")
                result = self.services.orchestrator.chat(
                    instance.get("message", ""),
                    instance.get("history") or [],
                    instance.get("documentId", ""),
                )
            except DocChatError as exc:
                logger.warning("Chat instance failed at stage %s: %s", exc.stage, exc)
                predictions.append({"success": False, "error": exc.message})
                continue
            except Exception:
                logger.exception("Chat instance failed unexpectedly")
                predictions.append({"success": False, "error": "Internal server error"})
                continue
            predictions.append(
                {"success": True, "message": result.answer, "toolsUsed": result.tools_used}
            )
        return {"predictions": predictions}


if __name__ == "__main__":
    model = DocChatModel()
    model.load()
    kserve.ModelServer().start([model])
