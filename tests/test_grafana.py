from civicwatch.shared.infrastructure.grafana import GrafanaOTLPExporter


def _exporter() -> GrafanaOTLPExporter:
    return GrafanaOTLPExporter(
        host="https://otlp-gateway.example.net/otlp",
        api_key="glc_secret",
        instance_id="123456"
    )


def test_exporter_disabled_without_credentials():
    exporter = GrafanaOTLPExporter(host=None, api_key=None, instance_id=None)

    assert not exporter.is_enabled()


async def test_disabled_exporter_sends_nothing():
    exporter = GrafanaOTLPExporter(host=None, api_key=None, instance_id=None)

    assert await exporter.export_watchdog_metrics(scanned=3, escalated=2, previous_escalated=0, duration_ms=40) is False


def test_watchdog_payload_shape():
    payload = _exporter()._build_payload(
        {"watchdog_escalated": ("1", 2), "watchdog_tick_duration_ms": ("ms", 40)},
        {"job": "sla_watchdog"}
    )

    metrics = payload["resourceMetrics"][0]["scopeMetrics"][0]["metrics"]
    assert [m["name"] for m in metrics] == ["watchdog_escalated", "watchdog_tick_duration_ms"]
    point = metrics[0]["gauge"]["dataPoints"][0]
    assert point["asInt"] == 2
    assert {"key": "job", "value": {"stringValue": "sla_watchdog"}} in point["attributes"]
