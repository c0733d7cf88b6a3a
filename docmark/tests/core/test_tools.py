"""
Tests for ToolController.

The controller is exercised directly, without hit testing, as if every
press landed on empty canvas.
"""

import pytest

from docmark.core.annotation import AnnotationStore, EventType, Tool, ToolController
from docmark.core.annotation.state import RectAnnotation
from docmark.tests.conftest import CANCEL, ScriptedTextProvider


@pytest.fixture
def provider():
    return ScriptedTextProvider()


@pytest.fixture
def controller(provider):
    return ToolController(AnnotationStore(), text_provider=provider)


def _drag(controller, start, *moves):
    controller.pointer_down(*start)
    for point in moves:
        controller.pointer_move(*point)
    return controller.pointer_up(*moves[-1]) if moves else controller.pointer_up()


class TestToolSwitching:
    def test_parse(self):
        assert Tool.parse("rect") is Tool.RECT
        assert Tool.parse(Tool.TEXT) is Tool.TEXT
        with pytest.raises(ValueError):
            Tool.parse("arrow")

    def test_set_tool_is_idempotent(self, controller):
        events = []
        controller.events.on(EventType.TOOL_CHANGED, events.append)

        assert controller.set_tool("rect")
        assert not controller.set_tool(Tool.RECT)

        assert controller.tool is Tool.RECT
        assert len(events) == 1

    def test_switching_keeps_annotations(self, controller, provider):
        provider.answers = ["one"]
        controller.pointer_down(10, 10)
        before = controller.store.snapshot()
        controller.set_tool("circle")
        controller.set_tool("select")
        assert controller.store.snapshot() == before


class TestShapeTools:
    def test_rect_drag_commits(self, controller):
        controller.set_tool("rect")
        created = _drag(controller, (10, 10), (100, 80))
        assert created == RectAnnotation(id=created.id, x=10, y=10, width=90, height=70)
        assert controller.store.snapshot() == (created,)
        assert controller.preview is None

    def test_rect_below_threshold_is_discarded(self, controller):
        controller.set_tool("rect")
        assert _drag(controller, (10, 10), (12, 11)) is None
        assert len(controller.store) == 0
        assert controller.preview is None

    def test_rect_needs_both_sides_above_threshold(self, controller):
        controller.set_tool("rect")
        assert _drag(controller, (10, 10), (200, 14)) is None
        assert len(controller.store) == 0

    def test_rect_dragged_up_left(self, controller):
        controller.set_tool("rect")
        created = _drag(controller, (100, 80), (50, 50), (10, 10))
        assert (created.x, created.y, created.width, created.height) == (10, 10, 90, 70)

    def test_circle_commits_with_start_as_center(self, controller):
        controller.set_tool("circle")
        created = _drag(controller, (50, 50), (80, 90))
        assert created.type == "circle"
        assert (created.x, created.y) == (50, 50)
        assert created.radius == pytest.approx(50.0)

    def test_circle_radius_at_threshold_is_discarded(self, controller):
        controller.set_tool("circle")
        assert _drag(controller, (50, 50), (53, 54)) is None
        assert len(controller.store) == 0

    def test_preview_follows_pointer(self, controller):
        controller.set_tool("rect")
        controller.pointer_down(10, 10)
        controller.pointer_move(40, 30)
        assert controller.is_drawing
        assert (controller.preview.width, controller.preview.height) == (30, 20)
        controller.pointer_move(60, 50)
        assert (controller.preview.width, controller.preview.height) == (50, 40)
        assert len(controller.store) == 0

    def test_pointer_up_without_position_uses_last_preview(self, controller):
        controller.set_tool("rect")
        controller.pointer_down(0, 0)
        controller.pointer_move(30, 30)
        created = controller.pointer_up()
        assert (created.width, created.height) == (30, 30)

    def test_cancel_draw(self, controller):
        controller.set_tool("circle")
        controller.pointer_down(0, 0)
        controller.pointer_move(40, 0)
        controller.cancel_draw()
        assert controller.pointer_up(40, 0) is None
        assert len(controller.store) == 0

    def test_threshold_from_config(self, provider):
        from docmark.utils.config import get_default_config

        cfg = get_default_config()
        cfg.tools.min_shape_size = 20
        controller = ToolController(AnnotationStore(), cfg=cfg, text_provider=provider)
        controller.set_tool("rect")
        assert _drag(controller, (0, 0), (15, 15)) is None
        assert _drag(controller, (0, 0), (25, 25)) is not None

    def test_select_tool_creates_nothing(self, controller):
        controller.set_tool("select")
        _drag(controller, (0, 0), (50, 50))
        assert len(controller.store) == 0


class TestMarkerTool:
    def test_markers_are_numbered_in_creation_order(self, controller, provider):
        provider.answers = ["Submit", ""]
        controller.pointer_down(100, 100)
        controller.pointer_down(200, 50)

        first, second = controller.store.snapshot()
        assert (first.number, first.label, first.x, first.y) == (1, "Submit", 100, 100)
        assert (second.number, second.label) == (2, "")

    def test_numbering_ignores_other_types(self, controller, provider):
        provider.answers = ["a", "note", "b"]
        controller.pointer_down(0, 0)
        controller.set_tool("text")
        controller.pointer_down(10, 10)
        controller.set_tool("rect")
        _drag(controller, (20, 20), (80, 80))
        controller.set_tool("marker")
        controller.pointer_down(30, 30)

        markers = [a for a in controller.store if a.type == "marker"]
        assert [m.number for m in markers] == [1, 2]

    def test_cancelled_label_still_creates_marker(self, controller, provider):
        provider.answers = [CANCEL]
        controller.pointer_down(5, 5)
        (marker,) = controller.store.snapshot()
        assert marker.label == ""
        assert marker.number == 1

    def test_request_carries_prompt_and_number(self, controller, provider):
        controller.pointer_down(5, 6)
        (request,) = provider.requests
        assert request.kind == "marker_label"
        assert request.number == 1
        assert (request.x, request.y) == (5, 6)
        assert "label" in request.prompt.lower()


class TestTextTool:
    def test_text_created_from_response(self, controller, provider):
        controller.set_tool("text")
        provider.answers = ["Click here"]
        controller.pointer_down(40, 60)
        (text,) = controller.store.snapshot()
        assert (text.type, text.text, text.x, text.y) == ("text", "Click here", 40, 60)

    @pytest.mark.parametrize("answer", ["", None, CANCEL])
    def test_empty_or_cancelled_text_creates_nothing(self, controller, provider, answer):
        controller.set_tool("text")
        provider.answers = [answer]
        controller.pointer_down(40, 60)
        assert len(controller.store) == 0
        assert not controller.awaiting_input


class TestNonBlockingInput:
    """Text requests are answered later while other input keeps flowing."""

    def test_request_stays_pending_until_answered(self, controller):
        controller.pointer_down(10, 10)
        assert controller.awaiting_input
        assert len(controller.store) == 0

        (request,) = controller.pending_requests
        assert controller.respond(request.request_id, "Later")
        assert not controller.awaiting_input
        assert controller.store.snapshot()[0].label == "Later"

    def test_other_input_is_processed_while_awaiting(self, controller):
        controller.pointer_down(10, 10)
        controller.set_tool("rect")
        rect = _drag(controller, (100, 100), (200, 200))
        assert rect is not None
        assert controller.awaiting_input

        (request,) = controller.pending_requests
        controller.respond(request.request_id, "")
        assert [a.type for a in controller.store] == ["rect", "marker"]

    def test_concurrent_markers_reserve_distinct_numbers(self, controller):
        controller.pointer_down(10, 10)
        controller.pointer_down(20, 20)
        first, second = controller.pending_requests
        assert (first.number, second.number) == (1, 2)

        # Answered out of order: numbers follow the presses, not the answers
        controller.respond(second.request_id, "b")
        controller.respond(first.request_id, "a")
        numbers = {m.label: m.number for m in controller.store}
        assert numbers == {"a": 1, "b": 2}

    def test_unknown_request(self, controller):
        assert not controller.respond(99, "x")
        assert not controller.cancel_request(99)

    def test_dropped_requests_ignore_late_answers(self, controller):
        controller.pointer_down(10, 10)
        (request,) = controller.pending_requests
        controller.drop_pending()

        assert not controller.awaiting_input
        assert not request.respond("too late")
        assert len(controller.store) == 0

    def test_input_events(self, controller):
        received = []
        controller.events.on(EventType.INPUT_REQUESTED, received.append)
        controller.events.on(EventType.INPUT_RESOLVED, received.append)

        controller.pointer_down(1, 2)
        (request,) = controller.pending_requests
        controller.cancel_request(request.request_id)

        assert [e.event_type for e in received] == [
            EventType.INPUT_REQUESTED,
            EventType.INPUT_RESOLVED,
        ]
        assert received[0].data["request"]["number"] == 1
        assert received[1].data["cancelled"] is True

    def test_failing_provider_leaves_nothing_pending(self):
        def broken(request):
            raise RuntimeError("dialog unavailable")

        controller = ToolController(AnnotationStore(), text_provider=broken)
        with pytest.raises(RuntimeError):
            controller.pointer_down(0, 0)
        assert not controller.awaiting_input
