"""Integration tests for the complete relay pipeline."""

import io

import pytest
import requests
from PIL import Image

from screenshot_relay.core.config import RelaySettings
from screenshot_relay.core.factories import RelayPipelineFactory
from screenshot_relay.core.observability import MetricsCollector
from screenshot_relay.handler import RequestHandler
from screenshot_relay.testing.fakes import (
    FakeHttpSession,
    FakeLogger,
    FakeResponse,
    create_screenshot_image,
    image_response,
    telegram_ok_response,
)

SHOT_URL = "https://example.com/report/shot.png"
SETTINGS = RelaySettings(bot_token="123:abc", chat_id="5293882405", backoff_seconds=0)


def _handler(session, settings=SETTINGS, metrics=None):
    orchestrator = RelayPipelineFactory.create_pipeline(
        settings=settings,
        session=session,
        logger=FakeLogger(),
        metrics_collector=metrics,
    )
    return RequestHandler(orchestrator)


class TestPipelineIntegration:
    """End-to-end runs through the factory-built pipeline and the Telegram gateway."""

    def test_end_to_end_relay(self):
        session = (
            FakeHttpSession()
            .queue_get(image_response(create_screenshot_image()))
            .queue_post(telegram_ok_response())
        )
        metrics = MetricsCollector()

        response = _handler(session, metrics=metrics).process_screenshot({"screenshots": SHOT_URL})

        assert response.status_code == 200
        assert response.body == {
            "status": "success",
            "message": "Image processed and sent to Telegram",
            "image_url": SHOT_URL,
        }
        post = session.calls_for("POST")[0]
        assert post.url == "https://api.telegram.org/bot123:abc/sendPhoto"
        assert post.kwargs["data"]["chat_id"] == "5293882405"
        _, payload, _ = post.kwargs["files"]["photo"]
        with Image.open(io.BytesIO(payload)) as sent:
            assert sent.size == (516, 316)
        assert metrics.get_summary()["total_operations"] == 3

    def test_end_to_end_dry_run_manual_box(self):
        session = FakeHttpSession().queue_get(image_response(create_screenshot_image()))

        response = _handler(session, settings=RelaySettings()).process_screenshot(
            {"screenshots": SHOT_URL, "dryRun": "1", "box": "0,50,5000,5000"}
        )

        assert response.status_code == 200
        assert response.content_type == "image/png"
        assert response.headers["X-Image-Size"] == "1280x750"
        assert session.calls_for("POST") == []

    def test_end_to_end_retry_then_relay(self):
        session = (
            FakeHttpSession()
            .queue_get(
                requests.exceptions.ConnectionError("Connection aborted: socket hang up"),
                requests.exceptions.ReadTimeout("read timed out"),
                image_response(create_screenshot_image()),
            )
            .queue_post(telegram_ok_response())
        )

        response = _handler(session).process_screenshot(
            {"screenshots": SHOT_URL, "resizeWidth": "50"}
        )

        assert response.status_code == 200
        assert len(session.calls_for("GET")) == 3
        _, payload, _ = session.calls_for("POST")[0].kwargs["files"]["photo"]
        with Image.open(io.BytesIO(payload)) as sent:
            assert sent.width == 320

    @pytest.mark.parametrize(
        "params,status,kind",
        [
            ({}, 400, "MissingParam"),
            ({"screenshots": "https://storage.googleapis.com/b/shot.png?X-Goog-Date=1"}, 400, "MalformedSignedUrl"),
            ({"screenshots": SHOT_URL, "box": "a,b"}, 400, "InvalidParameter"),
        ],
    )
    def test_rejected_before_any_network_call(self, params, status, kind):
        session = FakeHttpSession()

        response = _handler(session).process_screenshot(params)

        assert response.status_code == status
        assert response.body["kind"] == kind
        assert session.calls == []

    def test_source_not_found(self):
        session = FakeHttpSession().queue_get(FakeResponse(status_code=404))

        response = _handler(session).process_screenshot({"screenshots": SHOT_URL})

        assert response.status_code == 502
        assert response.body["error"] == "FetchError"
        assert response.body["kind"] == "BadStatus"
        assert response.body["detail"]["status_code"] == 404
        assert len(session.calls) == 1

    def test_source_times_out(self):
        session = FakeHttpSession().queue_get(*[requests.exceptions.ReadTimeout("read timed out")] * 3)

        response = _handler(session).process_screenshot({"screenshots": SHOT_URL})

        assert response.status_code == 504
        assert response.body["detail"]["attempts"] == 3

    def test_source_is_not_an_image(self):
        session = FakeHttpSession().queue_get(FakeResponse(status_code=200, content=b"<html></html>"))

        response = _handler(session).process_screenshot({"screenshots": SHOT_URL})

        assert response.status_code == 422
        assert response.body["kind"] == "DecodeFailure"

    def test_relay_not_configured(self):
        session = FakeHttpSession().queue_get(image_response(create_screenshot_image()))

        response = _handler(session, settings=RelaySettings()).process_screenshot({"screenshots": SHOT_URL})

        assert response.status_code == 500
        assert response.body["kind"] == "ConfigMissing"
        assert session.calls_for("POST") == []

    def test_relay_rejects_image(self):
        session = (
            FakeHttpSession()
            .queue_get(image_response(create_screenshot_image()))
            .queue_post(
                FakeResponse(
                    status_code=403,
                    json_data={"ok": False, "error_code": 403, "description": "Forbidden: bot was blocked by the user"},
                )
            )
        )

        response = _handler(session).process_screenshot({"screenshots": SHOT_URL})

        assert response.status_code == 502
        assert response.body["error"] == "DeliveryError"
        assert "bot was blocked" in response.body["message"]
        assert response.body["detail"]["detail"]["error_code"] == 403
