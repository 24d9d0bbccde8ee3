"""Prometheus metrics registry for the ZK terminal client."""

import threading
from typing import Final

from prometheus_client import (  # type: ignore[import-untyped]
    Counter,
    Gauge,
    Histogram,
    start_http_server,
)

# Command metrics
zk_commands_sent_total: Final = Counter(  # type: ignore[assignment]
    "zk_commands_sent_total",
    "Total commands sent to the terminal",
    ["command", "outcome"],
)

zk_command_latency_seconds: Final = Histogram(  # type: ignore[assignment]
    "zk_command_latency_seconds",
    "Command round-trip latency in seconds",
    ["command"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

zk_command_timeouts_total: Final = Counter(  # type: ignore[assignment]
    "zk_command_timeouts_total",
    "Total commands that timed out waiting for a reply",
    ["command"],
)

# Inbound routing metrics
zk_reply_dispatch_total: Final = Counter(  # type: ignore[assignment]
    "zk_reply_dispatch_total",
    "Inbound envelopes by routing outcome",
    ["outcome"],
)

zk_framing_resets_total: Final = Counter(  # type: ignore[assignment]
    "zk_framing_resets_total",
    "Total receive buffer resets after a bad envelope magic",
)

zk_envelope_decode_errors_total: Final = Counter(  # type: ignore[assignment]
    "zk_envelope_decode_errors_total",
    "Total inbound envelopes whose command header could not be decoded",
    ["reason"],
)

# Connection metrics
zk_connection_state: Final = Gauge(  # type: ignore[assignment]
    "zk_connection_state",
    "Current session state",
    ["device", "state"],
)

zk_handshake_total: Final = Counter(  # type: ignore[assignment]
    "zk_handshake_total",
    "Total connect / auth handshakes",
    ["device", "outcome"],
)

# Bulk transfer metrics
zk_bulk_bytes_total: Final = Counter(  # type: ignore[assignment]
    "zk_bulk_bytes_total",
    "Total bytes read through buffered transfers",
    ["command"],
)

zk_bulk_chunks_total: Final = Counter(  # type: ignore[assignment]
    "zk_bulk_chunks_total",
    "Total chunk reads by reply path",
    ["path"],
)

zk_bulk_duration_seconds: Final = Histogram(  # type: ignore[assignment]
    "zk_bulk_duration_seconds",
    "Buffered transfer duration in seconds",
    ["command", "outcome"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)

# Record metrics
zk_records_decoded_total: Final = Counter(  # type: ignore[assignment]
    "zk_records_decoded_total",
    "Total records decoded by kind and layout",
    ["kind", "layout"],
)

zk_record_decode_errors_total: Final = Counter(  # type: ignore[assignment]
    "zk_record_decode_errors_total",
    "Total records skipped because they could not be decoded",
    ["kind"],
)

_SESSION_STATES: Final = ("disconnected", "connecting", "unauthenticated", "connected")

_server_state = {"started": False}
_server_lock = threading.Lock()


def start_metrics_server(port: int = 9400) -> None:
    """Start Prometheus HTTP metrics server (idempotent)."""
    with _server_lock:
        if not _server_state["started"]:
            start_http_server(port)  # type: ignore[no-untyped-call]
            _server_state["started"] = True


def record_command_sent(command: str, outcome: str) -> None:
    """Record a command send outcome (ok, error, timeout, cancelled, send_failed)."""
    zk_commands_sent_total.labels(command=command, outcome=outcome).inc()  # type: ignore[no-untyped-call]


def record_command_latency(command: str, latency_seconds: float) -> None:
    """Record command round-trip latency."""
    zk_command_latency_seconds.labels(command=command).observe(latency_seconds)  # type: ignore[no-untyped-call]


def record_command_timeout(command: str) -> None:
    """Record a command timeout."""
    zk_command_timeouts_total.labels(command=command).inc()  # type: ignore[no-untyped-call]


def record_reply_dispatch(outcome: str) -> None:
    """Record how an inbound envelope was routed (bulk, matched, fallback, dropped)."""
    zk_reply_dispatch_total.labels(outcome=outcome).inc()  # type: ignore[no-untyped-call]


def record_framing_reset() -> None:
    """Record a receive buffer reset."""
    zk_framing_resets_total.inc()  # type: ignore[no-untyped-call]


def record_envelope_decode_error(reason: str) -> None:
    """Record an inbound envelope that could not be decoded."""
    zk_envelope_decode_errors_total.labels(reason=reason).inc()  # type: ignore[no-untyped-call]


def record_connection_state(device: str, state: str) -> None:
    """Record session state change."""
    # Set gauge to 1 for current state, 0 for all others
    for s in _SESSION_STATES:
        value = 1 if s == state else 0
        zk_connection_state.labels(device=device, state=s).set(value)  # type: ignore[no-untyped-call]


def record_handshake(device: str, outcome: str) -> None:
    """Record a handshake outcome (ok, auth_ok, auth_failed, rejected, network_error)."""
    zk_handshake_total.labels(device=device, outcome=outcome).inc()  # type: ignore[no-untyped-call]


def record_bulk_bytes(command: str, size: int) -> None:
    """Record bytes assembled by a buffered transfer."""
    zk_bulk_bytes_total.labels(command=command).inc(size)  # type: ignore[no-untyped-call]


def record_bulk_chunk(path: str) -> None:
    """Record one chunk read (direct, prepared, ack_ok)."""
    zk_bulk_chunks_total.labels(path=path).inc()  # type: ignore[no-untyped-call]


def record_bulk_duration(command: str, outcome: str, duration_seconds: float) -> None:
    """Record buffered transfer duration."""
    zk_bulk_duration_seconds.labels(command=command, outcome=outcome).observe(  # type: ignore[no-untyped-call]
        duration_seconds,
    )


def record_records_decoded(kind: str, layout: int, count: int) -> None:
    """Record decoded records for a layout width."""
    zk_records_decoded_total.labels(kind=kind, layout=str(layout)).inc(count)  # type: ignore[no-untyped-call]


def record_record_decode_error(kind: str) -> None:
    """Record a skipped record."""
    zk_record_decode_errors_total.labels(kind=kind).inc()  # type: ignore[no-untyped-call]
