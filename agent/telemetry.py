"""Telemetry and metrics logging for agent sessions."""

from __future__ import annotations

from dataclasses import dataclass, asdict
from datetime import datetime, timezone
import json
import os
import threading
import time
from typing import Any

from agent.config import TelemetryConfig


@dataclass
class AdapterCallMetric:
    """Metrics for a single adapter invocation."""
    adapter: str
    model: str | None
    context_size: int
    returned: int
    latency_ms: float
    error: str | None = None


@dataclass
class ToolCallMetric:
    """Metrics for a single tool call."""
    tool_name: str
    call_id: str
    duration_ms: float
    is_error: bool
    result_summary: str


@dataclass
class LoopRoundMetric:
    """Metrics for a single loop round (one adapter call plus its dispatch)."""
    round: int
    decision: str
    duration_ms: float


@dataclass
class LoopMetrics:
    """Session-level metrics summary."""
    session_id: str
    total_rounds: int
    tool_calls: list[ToolCallMetric]
    adapter_calls: list[AdapterCallMetric]
    total_duration_ms: float
    outcome: str


class Telemetry:
    """Capture structured telemetry for a session."""

    def __init__(self, config: TelemetryConfig, session_id: str):
        self.config = config
        self.session_id = session_id
        self._lock = threading.Lock()
        self._start_time = time.monotonic()
        self._adapter_calls: list[AdapterCallMetric] = []
        self._tool_calls: list[ToolCallMetric] = []
        self._rounds: list[LoopRoundMetric] = []
        self._total_rounds = 0
        self._outcome = ""
        self._log_path: str | None = None
        self._tracer = None

        if self.config.enabled:
            os.makedirs(self.config.log_dir, exist_ok=True)
            self._log_path = os.path.join(self.config.log_dir, f"{session_id}.jsonl")
            if self.config.otel_enabled:
                self._setup_otel()

    def record_adapter_call(
        self,
        adapter: str,
        model: str | None,
        context_size: int,
        returned: int,
        latency_ms: float,
        error: str | None = None,
    ) -> None:
        """Record an adapter call metric."""
        if not self.config.enabled:
            return
        metric = AdapterCallMetric(
            adapter=adapter,
            model=model,
            context_size=context_size,
            returned=returned,
            latency_ms=latency_ms,
            error=error,
        )
        self._adapter_calls.append(metric)
        self._log_event("adapter_call", asdict(metric))
        self._emit_span("adapter_call", asdict(metric))

    def record_tool_call(
        self,
        tool_name: str,
        call_id: str,
        duration_ms: float,
        is_error: bool,
        result_summary: str,
    ) -> None:
        """Record a tool call metric."""
        if not self.config.enabled:
            return
        metric = ToolCallMetric(
            tool_name=tool_name,
            call_id=call_id,
            duration_ms=duration_ms,
            is_error=is_error,
            result_summary=result_summary,
        )
        self._tool_calls.append(metric)
        self._log_event("tool_call", asdict(metric))
        self._emit_span("tool_call", asdict(metric))

    def record_round(self, round_number: int, decision: str, duration_ms: float) -> None:
        """Record a loop round metric."""
        if not self.config.enabled:
            return
        metric = LoopRoundMetric(
            round=round_number,
            decision=decision,
            duration_ms=duration_ms,
        )
        self._total_rounds += 1
        self._rounds.append(metric)
        self._log_event("loop_round", asdict(metric))

    def finalize(self, outcome: str) -> None:
        """Finalize session metrics with the invocation outcome."""
        if not self.config.enabled:
            return
        self._outcome = outcome
        self._log_event("session_summary", self.summary_dict())

    def summary(self) -> LoopMetrics:
        """Return a session-level metrics summary."""
        total_duration_ms = (time.monotonic() - self._start_time) * 1000
        return LoopMetrics(
            session_id=self.session_id,
            total_rounds=self._total_rounds,
            tool_calls=list(self._tool_calls),
            adapter_calls=list(self._adapter_calls),
            total_duration_ms=total_duration_ms,
            outcome=self._outcome,
        )

    def summary_dict(self) -> dict[str, Any]:
        """Return a JSON-serializable summary."""
        summary = self.summary()
        return {
            "session_id": summary.session_id,
            "total_rounds": summary.total_rounds,
            "tool_calls": [asdict(m) for m in summary.tool_calls],
            "adapter_calls": [asdict(m) for m in summary.adapter_calls],
            "total_duration_ms": summary.total_duration_ms,
            "outcome": summary.outcome,
        }

    def _log_event(self, event_type: str, payload: dict[str, Any]) -> None:
        if not self.config.enabled or not self._log_path:
            return
        record = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "session_id": self.session_id,
            "event": event_type,
            **payload,
        }
        line = json.dumps(record, default=str)
        with self._lock:
            with open(self._log_path, "a", encoding="utf-8") as f:
                f.write(line + "\n")

    def _emit_span(self, name: str, attributes: dict[str, Any]) -> None:
        if not self._tracer:
            return
        with self._tracer.start_as_current_span(name) as span:
            for key, value in attributes.items():
                if value is None:
                    continue
                span.set_attribute(key, value)

    def _setup_otel(self) -> None:
        try:
            from opentelemetry import trace
            from opentelemetry.sdk.resources import Resource
            from opentelemetry.sdk.trace import TracerProvider
            from opentelemetry.sdk.trace.export import BatchSpanProcessor
        except ImportError:
            self._log_event(
                "telemetry_warning",
                {"message": "OpenTelemetry is not installed; spans disabled."},
            )
            return

        resource = Resource.create({"service.name": self.config.otel_service_name})
        provider = TracerProvider(resource=resource)
        if self.config.otel_endpoint:
            from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter

            exporter = OTLPSpanExporter(endpoint=self.config.otel_endpoint)
            provider.add_span_processor(BatchSpanProcessor(exporter))

        trace.set_tracer_provider(provider)
        self._tracer = trace.get_tracer(__name__)
