"""Prometheus metrics for decoded readings."""

from __future__ import annotations

import logging
import socket
import threading
from socketserver import ThreadingMixIn
from wsgiref.simple_server import WSGIRequestHandler, WSGIServer, make_server

from prometheus_client import CollectorRegistry, Counter, Gauge, make_wsgi_app

from lywsd03mmc_exporter.core.model import SENSOR, SensorReading

NAMESPACE = "thermometer"
LABELS = ("sensor", "mac")
LOGGER = logging.getLogger(__name__)

_GAUGES = {
    "temperature_celsius": "Temperature in Celsius.",
    "humidity_ratio": "Humidity in percent.",
    "battery_ratio": "Battery in percent.",
    "battery_volts": "Battery in Volt.",
    "frame_current": "Current frame number.",
    "rssi_dbm": "Received Signal Strength Indication.",
}

LANDING_PAGE = (
    b"<html><head><title>lywsd03mmc-exporter</title></head>"
    b"<body><h1>lywsd03mmc-exporter</h1><p><a href=\"/metrics\">Metrics</a></p></body></html>"
)


def parse_listen(listen: str) -> tuple[str, int]:
    """Split ``host:port`` (host optional) into an address and port."""
    host, sep, port = listen.rpartition(":")
    if not sep or not port.isdigit():
        raise ValueError(f"Invalid listen address '{listen}'")
    return host.strip("[]") or "0.0.0.0", int(port)


class _ThreadingWSGIServer(ThreadingMixIn, WSGIServer):
    daemon_threads = True


class _ThreadingWSGIServerV6(_ThreadingWSGIServer):
    address_family = socket.AF_INET6


class _QuietHandler(WSGIRequestHandler):
    def log_message(self, format: str, *args: object) -> None:
        LOGGER.debug("%s %s", self.address_string(), format % args)


def make_app(registry: CollectorRegistry):
    """WSGI app serving the exposition at /metrics and a landing page elsewhere."""
    metrics_app = make_wsgi_app(registry)

    def app(environ, start_response):
        if environ.get("PATH_INFO") == "/metrics":
            return metrics_app(environ, start_response)
        start_response("200 OK", [("Content-Type", "text/html; charset=utf-8")])
        return [LANDING_PAGE]

    return app


class MetricsSink:
    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry or CollectorRegistry()
        self.gauges = {
            name: Gauge(name, doc, LABELS, namespace=NAMESPACE, registry=self.registry)
            for name, doc in _GAUGES.items()
        }
        self.dropped = Counter(
            "dropped_frames",
            "Beacons dropped by the decoder, by reason.",
            ("reason",),
            namespace=NAMESPACE,
            registry=self.registry,
        )

    def publish(self, reading: SensorReading, rssi: int | None = None) -> None:
        for name, value in reading.metrics():
            self.gauges[name].labels(SENSOR, reading.mac).set(value)
            LOGGER.debug("%s %s_%s %s", reading.mac, NAMESPACE, name, value)
        if rssi is not None:
            self.gauges["rssi_dbm"].labels(SENSOR, reading.mac).set(rssi)

    def withdraw(self, mac: str) -> None:
        for gauge in self.gauges.values():
            try:
                gauge.remove(SENSOR, mac)
            except KeyError:
                continue

    def drop(self, reason: str) -> None:
        self.dropped.labels(reason).inc()

    def value(self, name: str, mac: str) -> float | None:
        return self.registry.get_sample_value(
            f"{NAMESPACE}_{name}", {"sensor": SENSOR, "mac": mac}
        )

    def serve(self, listen: str) -> WSGIServer:
        """Serve the landing page and metrics from a daemon thread."""
        addr, port = parse_listen(listen)
        server_class = _ThreadingWSGIServerV6 if ":" in addr else _ThreadingWSGIServer
        server = make_server(
            addr,
            port,
            make_app(self.registry),
            server_class=server_class,
            handler_class=_QuietHandler,
        )
        threading.Thread(target=server.serve_forever, name="metrics-http", daemon=True).start()
        LOGGER.info("Prometheus metrics listening on %s", listen)
        return server
