"""Framework-independent request glue for the relay webhook.

Any HTTP framework can route ``GET /process-screenshot`` to
``RequestHandler.process_screenshot`` and ``GET /`` to
``RequestHandler.health``, then turn the returned ``HandlerResponse`` into
its own response type.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from .core.logging_config import get_logger
from .core.models import PipelineResult, RelayRequest
from .core.services import RelayOrchestrator

# Error kind -> HTTP status
STATUS_BY_KIND = {
    "MissingParam": 400,
    "MalformedSignedUrl": 400,
    "InvalidParameter": 400,
    "Network": 502,
    "Timeout": 504,
    "BadStatus": 502,
    "DecodeFailure": 422,
    "InvalidGeometry": 422,
    "DeliveryError": 502,
    "ConfigMissing": 500,
}


@dataclass
class HandlerResponse:
    """What the HTTP layer should send back."""

    status_code: int
    body: Optional[Dict[str, Any]] = None
    image: Optional[bytes] = None
    content_type: str = "application/json"
    headers: Dict[str, str] = field(default_factory=dict)


class RequestHandler:
    """Maps webhook query parameters to relay calls and results to responses."""

    def __init__(self, orchestrator: RelayOrchestrator):
        self._orchestrator = orchestrator
        self._logger = get_logger("handler")

    def health(self) -> HandlerResponse:
        return HandlerResponse(200, {"status": "success", "message": "Server is up"})

    def process_screenshot(self, params: Mapping[str, Any]) -> HandlerResponse:
        request = RelayRequest.from_query(params)
        self._logger.info(f"Received screenshot request: {request.screenshots}")

        try:
            result = self._orchestrator.run(request)
        except Exception as e:
            self._logger.error(f"Unexpected failure processing screenshot: {e}", exc_info=True)
            return HandlerResponse(
                500,
                {"status": "error", "kind": "Internal", "message": "Failed to process screenshot"},
            )

        if not result.ok:
            return self._error_response(result)

        if result.dry_run:
            return HandlerResponse(
                200,
                image=result.image.data,
                content_type=result.image.content_type or "image/png",
                headers={"X-Image-Size": f"{result.image.width}x{result.image.height}"},
            )

        return HandlerResponse(
            200,
            {
                "status": "success",
                "message": "Image processed and sent to Telegram",
                "image_url": result.source_url,
            },
        )

    @staticmethod
    def _error_response(result: PipelineResult) -> HandlerResponse:
        body = {
            "status": "error",
            "error": result.error,
            "kind": result.error_kind,
            "message": result.message,
        }
        extra = {k: v for k, v in result.detail.items() if k not in ("error", "kind", "message")}
        if extra:
            body["detail"] = extra
        return HandlerResponse(STATUS_BY_KIND.get(result.error_kind, 500), body)
