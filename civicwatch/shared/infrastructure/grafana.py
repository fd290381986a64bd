"""
Grafana OTLP Metrics Exporter
==============================

Pushes gauges to Grafana Cloud via the OTLP/HTTP JSON endpoint.

Metrics exported:
- llm_latency_ms / llm_tokens_total: classification and advisory calls
- watchdog_scanned / watchdog_escalated / watchdog_previous_escalated /
  watchdog_tick_duration_ms: one data point per completed watchdog tick
"""

import base64
import time
from typing import Dict, List, Optional

import httpx

from civicwatch.config import settings
from civicwatch.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


def _attributes(values: Dict[str, str]) -> List[dict]:
    return [{"key": key, "value": {"stringValue": str(value)}} for key, value in values.items()]


class GrafanaOTLPExporter:
    """
    Export metrics to Grafana Cloud via OTLP HTTP endpoint.

    Disabled (every export returns False) unless host, API key and
    instance ID are all configured.
    """

    def __init__(
        self,
        host: Optional[str] = None,
        api_key: Optional[str] = None,
        instance_id: Optional[str] = None
    ):
        self._host = host or settings.grafana_host
        self._api_key = api_key or settings.grafana_api_key
        self._instance_id = instance_id or settings.grafana_instance_id
        self._enabled = bool(self._host and self._api_key and self._instance_id)

        if self._enabled:
            auth_pair = f"{self._instance_id}:{self._api_key}"
            self._auth_encoded = base64.b64encode(auth_pair.encode()).decode()
            # Don't double-append the path if host already includes it
            if "/otlp/v1/metrics" not in self._host:
                self._url = f"{self._host}/otlp/v1/metrics"
            else:
                self._url = self._host
            logger.info(
                "Grafana OTLP exporter initialized",
                extra={"host": self._host, "instance_id": self._instance_id}
            )
        else:
            logger.debug(
                "Grafana OTLP exporter not configured - metrics will not be exported",
                extra={
                    "host_configured": bool(self._host),
                    "api_key_configured": bool(self._api_key),
                    "instance_id_configured": bool(self._instance_id)
                }
            )

    def is_enabled(self) -> bool:
        """Check if exporter is properly configured."""
        return self._enabled

    def _build_payload(
        self,
        gauges: Dict[str, tuple[str, int]],
        attributes: Dict[str, str]
    ) -> dict:
        """Build an OTLP metrics document with one gauge data point per entry."""
        timestamp_ns = int(time.time() * 1_000_000_000)
        metric_attributes = _attributes({"service": settings.app_name, **attributes})

        metrics = [
            {
                "name": name,
                "unit": unit,
                "gauge": {
                    "dataPoints": [
                        {
                            "asInt": int(value),
                            "timeUnixNano": timestamp_ns,
                            "attributes": metric_attributes
                        }
                    ]
                }
            }
            for name, (unit, value) in gauges.items()
        ]

        return {
            "resourceMetrics": [
                {
                    "resource": {
                        "attributes": _attributes({
                            "service.name": settings.app_name,
                            "service.version": settings.app_version,
                            "deployment.environment": settings.environment,
                        })
                    },
                    "scopeMetrics": [{"metrics": metrics}]
                }
            ]
        }

    async def _send(self, payload: dict) -> bool:
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Basic {self._auth_encoded}",
            "X-Grafana-Org-Id": str(self._instance_id)
        }

        try:
            async with httpx.AsyncClient(timeout=10.0) as client:
                response = await client.post(self._url, headers=headers, json=payload)
        except httpx.HTTPError as e:
            logger.error("Error exporting metrics to Grafana", extra={"error": str(e)})
            return False

        if response.status_code in (200, 202):
            return True

        logger.warning(
            "Failed to export metrics to Grafana",
            extra={
                "status_code": response.status_code,
                "response": response.text[:500],
                "url": self._url
            }
        )
        return False

    async def export_llm_metrics(
        self,
        model: str,
        prompt_tokens: int,
        completion_tokens: int,
        latency_ms: int,
        operation: str = "chat_completion"
    ) -> bool:
        """
        Export LLM usage metrics.

        Args:
            model: Model name
            prompt_tokens: Prompt tokens used
            completion_tokens: Completion tokens generated
            latency_ms: Request latency in milliseconds
            operation: classification or escalation_advisory

        Returns:
            True if export succeeded, False otherwise
        """
        if not self._enabled:
            return False

        payload = self._build_payload(
            {
                "llm_tokens_total": ("1", prompt_tokens + completion_tokens),
                "llm_latency_ms": ("ms", latency_ms),
            },
            {"model": model, "operation": operation}
        )
        return await self._send(payload)

    async def export_watchdog_metrics(
        self,
        scanned: int,
        escalated: int,
        previous_escalated: int,
        duration_ms: int
    ) -> bool:
        """Export the outcome of one watchdog tick."""
        if not self._enabled:
            return False

        payload = self._build_payload(
            {
                "watchdog_scanned": ("1", scanned),
                "watchdog_escalated": ("1", escalated),
                "watchdog_previous_escalated": ("1", previous_escalated),
                "watchdog_tick_duration_ms": ("ms", duration_ms),
            },
            {"job": "sla_watchdog"}
        )
        return await self._send(payload)


# Global exporter instance
_grafana_exporter: Optional[GrafanaOTLPExporter] = None


def get_grafana_exporter() -> GrafanaOTLPExporter:
    """Get or create global Grafana exporter instance."""
    global _grafana_exporter
    if _grafana_exporter is None:
        _grafana_exporter = GrafanaOTLPExporter()
    return _grafana_exporter


def init_grafana_exporter(
    host: str,
    api_key: str,
    instance_id: str
) -> GrafanaOTLPExporter:
    """Initialize Grafana exporter with credentials."""
    global _grafana_exporter
    _grafana_exporter = GrafanaOTLPExporter(
        host=host,
        api_key=api_key,
        instance_id=instance_id
    )
    return _grafana_exporter
