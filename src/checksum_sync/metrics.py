"""Metrics delivery to a Prometheus Pushgateway.

Metrics are best-effort: a failed push is logged as a warning and never
interrupts a sync. Each push sends one metric in the Prometheus text format

    # TYPE <metric_name> <metric_type>
    <metric_name>{<labels>} <value>

as a POST to `<pushgateway>/metrics/job/<job_name>`.
"""

from enum import Enum
from typing import Mapping, Optional, Protocol, Union
from urllib.parse import quote

import httpx
from loguru import logger

from checksum_sync.services.exceptions import SinkUnavailable

Number = Union[int, float]


class MetricType(str, Enum):
    COUNTER = "counter"
    GAUGE = "gauge"


def escape_label_value(value: str) -> str:
    """Escape a label value for the Prometheus text format."""
    return value.replace("\\", "\\\\").replace("\n", "\\n").replace('"', '\\"')


def render_metric(
    metric_name: str,
    value: Number,
    metric_type: MetricType = MetricType.GAUGE,
    labels: Optional[Mapping[str, str]] = None,
) -> str:
    """
    Render one metric sample in the Prometheus text exposition format.

    Examples:
        >>> render_metric("synced_files", 3)
        '# TYPE synced_files gauge\\nsynced_files 3\\n'
    """
    metric_type = MetricType(metric_type)
    sample = metric_name
    if labels:
        rendered = ",".join(f'{k}="{escape_label_value(str(v))}"' for k, v in labels.items())
        sample = f"{metric_name}{{{rendered}}}"
    return f"# TYPE {metric_name} {metric_type.value}\n{sample} {value}\n"


class MetricsSink(Protocol):
    async def push(
        self,
        job_name: str,
        metric_name: str,
        value: Number,
        metric_type: MetricType = MetricType.GAUGE,
        labels: Optional[Mapping[str, str]] = None,
    ) -> bool: ...

    async def aclose(self) -> None: ...


class NullSink:
    """Sink used when no Pushgateway is configured."""

    async def push(
        self,
        job_name: str,
        metric_name: str,
        value: Number,
        metric_type: MetricType = MetricType.GAUGE,
        labels: Optional[Mapping[str, str]] = None,
    ) -> bool:
        logger.debug(f"metrics disabled, dropping {job_name}/{metric_name}={value}")
        return False

    async def aclose(self) -> None:
        pass


class PushgatewaySink:
    """Pushes metrics to a Prometheus Pushgateway over HTTP."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    def job_url(self, job_name: str) -> str:
        return f"{self.base_url}/metrics/job/{quote(job_name, safe='')}"

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def send(
        self,
        job_name: str,
        metric_name: str,
        value: Number,
        metric_type: MetricType = MetricType.GAUGE,
        labels: Optional[Mapping[str, str]] = None,
    ) -> None:
        """
        Push one metric.

        Raises:
            SinkUnavailable: If the Pushgateway cannot be reached or rejects the push
        """
        body = render_metric(metric_name, value, metric_type, labels)
        url = self.job_url(job_name)
        try:
            response = await self._get_client().post(
                url,
                content=body.encode("utf-8"),
                headers={"Content-Type": "text/plain; version=0.0.4"},
            )
            response.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise SinkUnavailable(f"Push of {metric_name} to {url} failed: {e}") from e

    async def push(
        self,
        job_name: str,
        metric_name: str,
        value: Number,
        metric_type: MetricType = MetricType.GAUGE,
        labels: Optional[Mapping[str, str]] = None,
    ) -> bool:
        """Push one metric. Fire-and-forget, never raises.

        Returns:
            True if the Pushgateway accepted the metric
        """
        try:
            await self.send(job_name, metric_name, value, metric_type, labels)
        except SinkUnavailable as e:
            logger.warning(f"Metrics push failed: {e}")
            return False
        logger.debug(f"pushed {job_name}/{metric_name}={value}")
        return True

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None


def create_sink(pushgateway_url: Optional[str], timeout: float = 10.0) -> MetricsSink:
    """Pushgateway sink when a URL is configured, otherwise a no-op sink."""
    if pushgateway_url:
        return PushgatewaySink(pushgateway_url, timeout=timeout)
    return NullSink()
