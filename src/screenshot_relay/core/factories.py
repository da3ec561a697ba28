"""Factory classes for creating configured service instances."""

from typing import Optional

import requests
from requests.adapters import HTTPAdapter

from .config import RelaySettings, load_settings
from .logging_config import get_logger
from .network import prefer_ipv4
from .observability import MetricsCollector, StructuredLogger
from .protocols import HttpSessionProtocol, ImageSink, LoggerProtocol
from .region import RegionResolver
from .services import (
    ImageFetcherService,
    RelayOrchestrator,
    TelegramRelayGateway,
    TransformPipelineService,
)


class LoggerFactory:
    """Factory for creating logger instances."""

    @staticmethod
    def create_logger(name: str = "screenshot-relay") -> LoggerProtocol:
        """Create a structured logger on top of the configured stdlib logger."""
        return StructuredLogger(get_logger(name))


class HttpSessionFactory:
    """Factory for the shared outbound HTTP session."""

    @staticmethod
    def create_session(pool_size: int = 10, max_redirects: int = 5) -> requests.Session:
        """
        Create a keep-alive session capped at ``pool_size`` sockets per host.

        The pool blocks when full, so concurrent callers wait for a free
        socket instead of opening more. Retries are handled by the fetcher,
        not by urllib3.
        """
        session = requests.Session()
        session.max_redirects = max_redirects
        adapter = HTTPAdapter(
            pool_connections=pool_size,
            pool_maxsize=pool_size,
            pool_block=True,
            max_retries=0,
        )
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        return session


class RelayPipelineFactory:
    """Factory for creating the complete relay pipeline."""

    @staticmethod
    def create_pipeline(
        settings: Optional[RelaySettings] = None,
        session: Optional[HttpSessionProtocol] = None,
        sink: Optional[ImageSink] = None,
        logger: Optional[LoggerProtocol] = None,
        metrics_collector: Optional[MetricsCollector] = None,
    ) -> RelayOrchestrator:
        """Create a fully configured relay orchestrator.

        When no session is given a pooled ``requests.Session`` is created and
        the process-wide IPv4 preference from ``settings`` is applied.
        """
        if settings is None:
            settings = load_settings()

        if logger is None:
            logger = LoggerFactory.create_logger()

        if session is None:
            prefer_ipv4(settings.prefer_ipv4)
            session = HttpSessionFactory.create_session(
                pool_size=settings.pool_size, max_redirects=settings.max_redirects
            )

        fetcher = ImageFetcherService(
            session,
            logger,
            timeout=settings.fetch_timeout,
            max_attempts=settings.max_attempts,
            backoff_seconds=settings.backoff_seconds,
        )
        transformer = TransformPipelineService(RegionResolver(), logger)

        if sink is None:
            sink = TelegramRelayGateway(
                session,
                settings.bot_token,
                logger,
                api_base=settings.api_base,
                timeout=settings.fetch_timeout,
            )

        return RelayOrchestrator(
            fetcher=fetcher,
            transformer=transformer,
            sink=sink,
            settings=settings,
            logger=logger,
            metrics_collector=metrics_collector,
        )
