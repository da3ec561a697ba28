"""Service implementations for the screenshot relay pipeline."""

from typing import Any, Callable, Dict, Optional

import requests

from .config import RelaySettings
from .error_handling import retry_transient_failures, with_error_handling
from .exceptions import (
    ConfigurationError,
    DeliveryError,
    FetchError,
    MissingParamError,
    ScreenshotRelayError,
)
from .image_utils import (
    OUTPUT_CONTENT_TYPE,
    decode_image,
    extract_region,
    pad_image,
    probe_image,
    resize_to_width,
    to_image_buffer,
    trim_uniform_margins,
)
from .models import (
    DeliveryResult,
    FetchRequest,
    ImageBuffer,
    PipelineResult,
    RelayRequest,
    RequestedBox,
    TransformMode,
    TransformOptions,
)
from .network import validate_source_url
from .observability import LogContext, MetricsCollector, timed_operation
from .protocols import (
    HttpSessionProtocol,
    ImageSink,
    ImageSource,
    ImageTransformer,
    LoggerProtocol,
)
from .region import RegionResolver

# Some image hosts reject the default python-requests signature
BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
    ),
    "Accept": "image/png,image/jpeg,image/webp,image/*;q=0.8,*/*;q=0.5",
}
RELAY_FILENAME = "screenshot.png"


class ImageFetcherService(ImageSource):
    """Fetches source images over HTTP, retrying transient failures."""

    def __init__(
        self,
        session: HttpSessionProtocol,
        logger: LoggerProtocol,
        timeout: float = 45.0,
        max_attempts: int = 3,
        backoff_seconds: float = 0.3,
        headers: Optional[Dict[str, str]] = None,
    ):
        self._session = session
        self._logger = logger
        self._timeout = timeout
        self._headers = dict(headers or BROWSER_HEADERS)
        self._fetch_with_retry = retry_transient_failures(
            max_attempts=max_attempts, backoff_seconds=backoff_seconds
        )(self._attempt)

    def fetch(self, url: str) -> ImageBuffer:
        """
        Fetch ``url`` into memory.

        Raises:
            FetchError: ``Network``, ``Timeout`` or ``BadStatus`` once the
                failure is non-transient or the attempts are used up.
        """
        return self._fetch_with_retry(FetchRequest(url=url))

    @with_error_handling
    def _attempt(self, request: FetchRequest) -> ImageBuffer:
        context = LogContext(operation="fetch", component="image_fetcher").with_metadata(
            attempt=request.attempt
        )
        self._logger.debug(f"GET {request.url}", context)

        try:
            response = self._session.get(
                request.url,
                headers=self._headers,
                timeout=self._timeout,
                allow_redirects=True,
            )
        finally:
            request.attempt += 1

        status = response.status_code
        if not 200 <= status < 400:
            raise FetchError(
                f"Source responded with HTTP {status}",
                kind=FetchError.BAD_STATUS,
                url=request.url,
                status_code=status,
            )

        data = response.content
        content_type = response.headers.get("Content-Type")
        probed = probe_image(data)
        width, height, image_format = probed if probed else (None, None, None)

        self._logger.info(
            "Fetched source image",
            context,
            status=status,
            bytes=len(data),
            size=f"{width}x{height}",
        )
        return ImageBuffer(
            data=data,
            width=width,
            height=height,
            format=image_format,
            content_type=content_type,
        )


class TransformPipelineService(ImageTransformer):
    """Extracts the region of interest from a screenshot.

    Every stage takes an ``ImageBuffer`` and returns a new PNG-encoded one,
    so each can be exercised on its own.
    """

    def __init__(
        self,
        resolver: Optional[RegionResolver] = None,
        logger: Optional[LoggerProtocol] = None,
    ):
        self._resolver = resolver or RegionResolver()
        self._logger = logger

    def process(self, image: ImageBuffer, options: TransformOptions) -> ImageBuffer:
        """
        Run the manual or auto chain selected by ``options``.

        Raises:
            TransformError: ``DecodeFailure`` if ``image`` is not an image,
                ``InvalidGeometry`` if no valid region can be cut from it.
        """
        if options.mode is TransformMode.MANUAL:
            result = self.extract(image, options.box)
        else:
            result = self.trim(image, options.trim_threshold)
            result = self.pad(result, options.padding)
            if options.resize_width is not None:
                result = self.resize(result, options.resize_width)

        self._log(
            "Transformed image",
            mode=options.mode.value,
            source=f"{image.width}x{image.height}",
            output=f"{result.width}x{result.height}",
        )
        return result

    def extract(self, image: ImageBuffer, box: RequestedBox) -> ImageBuffer:
        source = decode_image(image.data)
        rect = self._resolver.resolve(source.width, source.height, box)
        self._log("Resolved manual box", requested=box.model_dump(), resolved=rect.as_crop_box())
        return to_image_buffer(extract_region(source, rect))

    def trim(self, image: ImageBuffer, threshold: int = 10) -> ImageBuffer:
        return to_image_buffer(trim_uniform_margins(decode_image(image.data), threshold))

    def pad(self, image: ImageBuffer, padding: int = 8) -> ImageBuffer:
        return to_image_buffer(pad_image(decode_image(image.data), padding))

    def resize(self, image: ImageBuffer, width: int) -> ImageBuffer:
        return to_image_buffer(resize_to_width(decode_image(image.data), width))

    def _log(self, message: str, **kwargs: Any) -> None:
        if self._logger is not None:
            context = LogContext(operation="transform", component="transform_pipeline")
            self._logger.debug(message, context, **kwargs)


class TelegramRelayGateway(ImageSink):
    """Delivers images to a Telegram chat through the Bot API ``sendPhoto``."""

    def __init__(
        self,
        session: HttpSessionProtocol,
        bot_token: Optional[str],
        logger: LoggerProtocol,
        api_base: str = "https://api.telegram.org",
        timeout: float = 45.0,
    ):
        self._session = session
        self._bot_token = bot_token
        self._logger = logger
        self._api_base = api_base.rstrip("/")
        self._timeout = timeout

    def deliver(self, image: ImageBuffer, target: str, caption: str = "") -> DeliveryResult:
        """Send ``image`` to chat ``target``. Never raises for delivery failures."""
        context = LogContext(operation="deliver", component="telegram_gateway")
        if not self._bot_token:
            return DeliveryResult(ok=False, error_kind="DeliveryError", message="Bot token is not set")

        data = {"chat_id": target}
        if caption:
            data["caption"] = caption
        files = {"photo": (RELAY_FILENAME, image.data, OUTPUT_CONTENT_TYPE)}

        try:
            response = self._session.post(
                f"{self._api_base}/bot{self._bot_token}/sendPhoto",
                data=data,
                files=files,
                timeout=self._timeout,
            )
        except requests.exceptions.RequestException as e:
            message = self._redact(f"Relay unreachable: {e}")
            self._logger.error(message, context)
            return DeliveryResult(ok=False, error_kind="DeliveryError", message=message)

        payload = self._json(response)
        if 200 <= response.status_code < 300 and payload.get("ok") is True:
            self._logger.info("Image delivered", context, bytes=len(image.data))
            return DeliveryResult(ok=True, message="Image delivered", detail=payload)

        description = payload.get("description") or f"HTTP {response.status_code}"
        message = self._redact(f"Relay rejected the image: {description}")
        self._logger.error(message, context, status=response.status_code)
        detail = {"status_code": response.status_code}
        detail.update({k: v for k, v in payload.items() if k in ("error_code", "description", "parameters")})
        return DeliveryResult(ok=False, error_kind="DeliveryError", message=message, detail=detail)

    @staticmethod
    def _json(response: Any) -> Dict[str, Any]:
        try:
            payload = response.json()
        except ValueError:
            return {}
        return payload if isinstance(payload, dict) else {}

    def _redact(self, text: str) -> str:
        if self._bot_token:
            text = text.replace(self._bot_token, "***")
        return text


class RelayOrchestrator:
    """Runs one relay call: validate, fetch, transform, then deliver or return."""

    def __init__(
        self,
        fetcher: ImageSource,
        transformer: ImageTransformer,
        sink: ImageSink,
        settings: RelaySettings,
        logger: LoggerProtocol,
        metrics_collector: Optional[MetricsCollector] = None,
    ):
        self._fetcher = fetcher
        self._transformer = transformer
        self._sink = sink
        self._settings = settings
        self._logger = logger
        self._metrics_collector = metrics_collector

    def run(self, request: RelayRequest) -> PipelineResult:
        """
        Process one request.

        Project errors are returned as a failed ``PipelineResult`` carrying
        the error family, its kind and message; a failed result never holds
        an image. Anything else propagates.
        """
        url = (request.screenshots or "").strip()
        log_context = LogContext(component="relay_orchestrator").with_metadata(
            dry_run=request.dry_run
        )
        stage_metrics = MetricsCollector()
        result = PipelineResult(source_url=url, dry_run=request.dry_run)

        try:
            image = self._execute(url, request, stage_metrics, log_context)
            result.ok = True
            result.image = image
            result.delivered = not request.dry_run
            result.message = (
                "Image processed (dry run)" if request.dry_run else "Image processed and relayed"
            )
            self._logger.info(result.message, log_context, url=url)

        except ScreenshotRelayError as e:
            result.error = e.family
            result.error_kind = e.kind
            result.message = e.message
            result.detail = e.to_dict()
            self._logger.error(
                f"Relay failed: {e.message}",
                log_context.with_metadata(error=e.family, kind=e.kind),
            )

        finally:
            for metric in stage_metrics.get_metrics():
                result.timings[metric.operation] = round(metric.duration_ms, 1)
                if self._metrics_collector is not None:
                    self._metrics_collector.record_metric(metric)

        return result

    def _execute(
        self,
        url: str,
        request: RelayRequest,
        stage_metrics: MetricsCollector,
        log_context: LogContext,
    ) -> ImageBuffer:
        if not url:
            raise MissingParamError("Parameter 'screenshots' is required")
        validate_source_url(url)

        options = TransformOptions.from_params(
            pad=request.pad,
            resize_width=request.resize_width,
            box=request.box,
            default_padding=self._settings.default_padding,
            trim_threshold=self._settings.trim_threshold,
        )
        self._logger.debug(
            "Processing screenshot",
            log_context.with_operation("process"),
            url=url,
            mode=options.mode.value,
        )

        source = self._timed("fetch", stage_metrics, self._fetcher.fetch, url)
        image = self._timed("transform", stage_metrics, self._transformer.process, source, options)

        if request.dry_run:
            return image

        # Checked only now so dry runs work without relay credentials
        if not self._settings.relay_configured:
            raise ConfigurationError(
                "Relay target is not configured: set TELEGRAM_BOT_TOKEN and TELEGRAM_CHAT_ID"
            )

        delivery = self._timed(
            "deliver",
            stage_metrics,
            self._sink.deliver,
            image,
            self._settings.chat_id,
            request.caption or "",
        )
        if not delivery.ok:
            raise DeliveryError(delivery.message, detail=delivery.detail)
        return image

    @staticmethod
    def _timed(
        stage: str, stage_metrics: MetricsCollector, func: Callable[..., Any], *args: Any
    ) -> Any:
        return timed_operation(stage, stage_metrics)(func)(*args)
