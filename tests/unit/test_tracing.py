"""
Unit tests for tracing helpers

Spans are captured with the SDK's in-memory exporter on a private provider.
"""

import pytest
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import StatusCode

from datarecon.utils.tracing import (
    add_span_attributes,
    add_span_event,
    trace_function,
    trace_operation,
)
from datarecon.utils.tracing import context as tracing_context


@pytest.fixture
def exporter(monkeypatch):
    exporter = InMemorySpanExporter()
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    monkeypatch.setattr(tracing_context, "get_tracer", lambda: provider.get_tracer("test"))
    return exporter


class TestTraceOperation:
    """Test trace_operation"""

    def test_span_with_attributes(self, exporter):
        with trace_operation("reconcile.batch", side="source", size=5):
            add_span_attributes(written=5)
            add_span_event("batch_failed", batch_index=1)

        [span] = exporter.get_finished_spans()
        assert span.name == "reconcile.batch"
        assert span.attributes["side"] == "source"
        assert span.attributes["written"] == 5
        assert span.events[0].name == "batch_failed"

    def test_exception_recorded_and_reraised(self, exporter):
        with pytest.raises(KeyError):
            with trace_operation("failing"):
                raise KeyError("id")

        [span] = exporter.get_finished_spans()
        assert span.status.status_code == StatusCode.ERROR
        assert span.attributes["error.type"] == "KeyError"

    def test_non_primitive_attributes_stringified(self, exporter):
        with trace_operation("op", fields=frozenset({"a"}), nothing=None):
            pass
        [span] = exporter.get_finished_spans()
        assert isinstance(span.attributes["fields"], str)


class TestTraceFunction:
    """Test trace_function decorator"""

    def test_named_span(self, exporter):
        @trace_function("custom.name", backend="memory")
        def work(x):
            return x * 2

        assert work(2) == 4
        [span] = exporter.get_finished_spans()
        assert span.name == "custom.name"
        assert span.attributes["function"] == "work"
        assert span.attributes["backend"] == "memory"

    def test_default_name(self, exporter):
        @trace_function()
        def helper():
            return None

        helper()
        assert exporter.get_finished_spans()[0].name.endswith("helper")

    def test_without_provider_is_noop(self):
        """Test helpers are safe with no tracing initialized"""
        with trace_operation("noop"):
            add_span_attributes(x=1)
            add_span_event("e")
