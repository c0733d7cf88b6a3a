"""
Tests for AnnotationSession.

Pointer positions are canvas coordinates; screen mapping is covered by the
end-to-end tests.
"""

import logging

import numpy as np
import pytest

from docmark.core.annotation import (
    AnnotationEvent,
    EventEmitter,
    EventType,
    Tool,
)
from docmark.core.annotation.state import (
    MarkerAnnotation,
    RectAnnotation,
    TextAnnotation,
)
from docmark.tests.conftest import CANCEL, assert_only_moved


def _click(session, x, y):
    session.pointer_down(x, y)
    return session.pointer_up(x, y)


def _drag(session, start, end):
    session.pointer_down(*start)
    session.pointer_move(*end)
    return session.pointer_up(*end)


class TestImageLifecycle:
    def test_initial_state(self, session):
        assert session.image is None
        assert session.image_size is None
        assert session.annotations == ()
        assert session.selected_id is None
        assert session.tool is Tool.MARKER
        assert session.render_view() is None

    def test_load_image(self, session, test_image):
        events = []
        session.events.on(EventType.IMAGE_LOADED, events.append)

        session.load_image(test_image, "shot.png")

        assert session.image_size == (800, 600)
        assert session.image_path == "shot.png"
        assert events[0].data == {"width": 800, "height": 600, "path": "shot.png"}

    def test_load_rejects_bad_image(self, session):
        with pytest.raises(ValueError):
            session.load_image(np.zeros((10, 10), dtype=np.float64))
        assert session.image is None

    def test_alpha_channel_is_kept(self, session):
        session.load_image(np.zeros((60, 80, 4), dtype=np.uint8))
        assert session.image.shape == (60, 80, 4)
        assert session.render_view().shape == (60, 80, 3)
        assert session.export().width == 80

    def test_grayscale_is_converted(self, session):
        session.load_image(np.zeros((30, 40), dtype=np.uint8))
        assert session.image.shape == (30, 40, 3)

    def test_new_image_discards_everything(self, loaded_session, text_provider, small_image):
        text_provider.answers = ["a"]
        _click(loaded_session, 100, 100)
        _click(loaded_session, 300, 300)  # left pending
        loaded_session.set_tool("rect")
        loaded_session.pointer_down(500, 500)
        loaded_session.pointer_move(560, 560)
        late = loaded_session.pending_requests[0]

        loaded_session.load_image(small_image)

        assert loaded_session.annotations == ()
        assert loaded_session.pending_requests == ()
        assert loaded_session.preview is None
        assert loaded_session.selected_id is None
        assert not loaded_session.respond_to_input(late.request_id, "late")
        assert not late.respond("late")
        assert loaded_session.annotations == ()

    def test_reset(self, loaded_session, text_provider):
        text_provider.answers = [""]
        _click(loaded_session, 100, 100)
        events = []
        loaded_session.events.on(EventType.SESSION_RESET, events.append)

        loaded_session.reset()

        assert loaded_session.image is None
        assert loaded_session.annotations == ()
        assert len(events) == 1
        assert loaded_session.export() is None

    def test_pointer_without_image_is_ignored(self, session, text_provider):
        session.pointer_down(10, 10)
        assert text_provider.requests == []


class TestMarkers:
    def test_marker_numbering(self, loaded_session, text_provider):
        text_provider.answers = ["Submit", CANCEL, ""]
        for x in (100, 300, 500):
            _click(loaded_session, x, 100)

        markers = loaded_session.annotations
        assert [m.number for m in markers] == [1, 2, 3]
        assert [m.label for m in markers] == ["Submit", "", ""]
        assert all(isinstance(m, MarkerAnnotation) for m in markers)
        assert text_provider.requests[0].prompt == "Enter label for marker (optional):"

    def test_numbers_are_not_reassigned_after_delete(self, loaded_session, text_provider):
        text_provider.answers = ["", "", "", ""]
        for x in (100, 200, 300):
            _click(loaded_session, x, 100)
        second = loaded_session.annotations[1]

        assert loaded_session.remove_annotation(second.id)
        _click(loaded_session, 400, 100)

        assert [m.number for m in loaded_session.annotations] == [1, 3, 3]

    def test_pending_requests_reserve_numbers(self, loaded_session, text_provider):
        _click(loaded_session, 100, 100)
        _click(loaded_session, 300, 100)
        first, second = loaded_session.pending_requests
        assert (first.number, second.number) == (1, 2)

        loaded_session.respond_to_input(second.request_id, "b")
        loaded_session.respond_to_input(first.request_id, "a")

        numbers = {m.label: m.number for m in loaded_session.annotations}
        assert numbers == {"a": 1, "b": 2}

    def test_drawing_continues_while_input_pending(self, loaded_session):
        _click(loaded_session, 100, 100)
        request = loaded_session.pending_requests[0]

        loaded_session.set_tool("rect")
        _drag(loaded_session, (400, 400), (500, 480))
        loaded_session.respond_to_input(request.request_id, "late label")

        rect, marker = loaded_session.annotations
        assert isinstance(rect, RectAnnotation)
        assert marker.label == "late label"
        assert marker.number == 1


class TestText:
    def test_text_created(self, loaded_session, text_provider):
        loaded_session.set_tool("text")
        text_provider.answers = ["Hello"]
        _click(loaded_session, 200, 150)

        (text,) = loaded_session.annotations
        assert isinstance(text, TextAnnotation)
        assert (text.x, text.y, text.text) == (200, 150, "Hello")

    @pytest.mark.parametrize("answer", ["", None, CANCEL])
    def test_empty_text_creates_nothing(self, loaded_session, text_provider, answer):
        loaded_session.set_tool("text")
        text_provider.answers = [answer]
        _click(loaded_session, 200, 150)
        assert loaded_session.annotations == ()
        assert loaded_session.pending_requests == ()


class TestShapes:
    @pytest.mark.parametrize("tool", ["rect", "circle"])
    def test_small_shapes_are_discarded(self, loaded_session, tool):
        loaded_session.set_tool(tool)
        _drag(loaded_session, (100, 100), (103, 104))
        assert loaded_session.annotations == ()
        assert loaded_session.preview is None

    def test_rect_from_any_direction(self, loaded_session):
        loaded_session.set_tool("rect")
        created = _drag(loaded_session, (300, 250), (200, 200))
        assert (created.x, created.y, created.width, created.height) == (200, 200, 100, 50)

    def test_pointer_up_without_position(self, loaded_session):
        loaded_session.set_tool("circle")
        loaded_session.pointer_down(100, 100)
        loaded_session.pointer_move(130, 140)
        created = loaded_session.pointer_up()
        assert created.radius == pytest.approx(50)


class TestSelectionAndDrag:
    @pytest.fixture
    def two_markers(self, loaded_session, text_provider):
        text_provider.answers = ["", ""]
        _click(loaded_session, 100, 100)
        _click(loaded_session, 300, 300)
        return loaded_session

    def test_press_selects_and_background_clears(self, two_markers):
        first = two_markers.annotations[0]
        _click(two_markers, 105, 100)
        assert two_markers.selected_id == first.id

        two_markers.set_tool("select")
        _click(two_markers, 600, 500)
        assert two_markers.selected_id is None

    def test_press_on_annotation_does_not_create(self, two_markers, text_provider):
        requests = len(text_provider.requests)
        _click(two_markers, 100, 100)
        assert len(text_provider.requests) == requests
        assert len(two_markers.annotations) == 2

    def test_drag_moves_only_the_dragged_annotation(self, two_markers):
        before = two_markers.annotations
        updates = []
        two_markers.events.on(EventType.ANNOTATION_UPDATED, updates.append)

        two_markers.pointer_down(100, 100)
        two_markers.pointer_move(120, 110)
        two_markers.pointer_move(150, 130)
        assert two_markers.annotations == before
        assert two_markers.get_display_annotations()[0].x == 150
        two_markers.pointer_up(160, 140)

        after = two_markers.annotations
        assert_only_moved(before, after, before[0].id)
        assert (after[0].x, after[0].y) == (160, 140)
        assert len(updates) == 1

    def test_drag_works_with_shape_tool(self, two_markers):
        two_markers.set_tool("rect")
        _drag(two_markers, (300, 300), (350, 320))
        assert len(two_markers.annotations) == 2
        assert (two_markers.annotations[1].x, two_markers.annotations[1].y) == (350, 320)
        assert two_markers.preview is None

    def test_click_without_move_commits_nothing(self, two_markers):
        updates = []
        two_markers.events.on(EventType.ANNOTATION_UPDATED, updates.append)
        _click(two_markers, 100, 100)
        assert updates == []

    def test_press_on_annotation_ends_unreleased_draw(self, two_markers):
        two_markers.set_tool("rect")
        two_markers.pointer_down(10, 10)
        two_markers.pointer_move(100, 80)
        # The release of the draw never arrives; the next press hits a marker
        _drag(two_markers, (300, 300), (320, 310))

        assert two_markers.preview is None
        assert two_markers.pointer_up(200, 200) is None
        assert len(two_markers.annotations) == 2
        assert not any(isinstance(a, RectAnnotation) for a in two_markers.annotations)

    def test_remove_selected(self, two_markers):
        first, _ = two_markers.annotations
        assert not two_markers.remove_selected()

        _click(two_markers, 300, 300)
        assert two_markers.remove_selected()

        assert two_markers.annotations == (first,)
        assert two_markers.selected_id is None
        assert not two_markers.remove_selected()

    def test_remove_selected_clears_selection(self, two_markers):
        target = two_markers.annotations[1]
        _click(two_markers, 300, 300)
        assert two_markers.remove_annotation(target.id)
        assert two_markers.selected_id is None
        assert not two_markers.remove_annotation(target.id)

    def test_clear_annotations_keeps_image(self, two_markers):
        two_markers.clear_annotations()
        assert two_markers.annotations == ()
        assert two_markers.image is not None

    def test_selection_is_not_exported(self, two_markers):
        plain = two_markers.exporter.render(two_markers.image, two_markers.annotations)
        _click(two_markers, 100, 100)
        assert two_markers.selected_id is not None

        exported = two_markers.exporter.render(two_markers.image, two_markers.annotations)
        np.testing.assert_array_equal(plain, exported)
        assert not np.array_equal(two_markers.render_view(), exported)


class TestSessionOutput:
    def test_statistics(self, loaded_session, text_provider):
        text_provider.answers = [""]
        _click(loaded_session, 100, 100)
        loaded_session.set_tool("rect")
        _drag(loaded_session, (400, 400), (500, 500))

        stats = loaded_session.get_statistics()
        assert stats["total"] == 2
        assert stats["marker"] == 1
        assert stats["rect"] == 1

    def test_export_event(self, loaded_session):
        events = []
        loaded_session.events.on(EventType.EXPORT_COMPLETED, events.append)
        artifact = loaded_session.export()
        assert events[0].data == {
            "filename": artifact.filename,
            "width": 800,
            "height": 600,
        }

    def test_visualization_data(self, loaded_session):
        data = loaded_session.get_visualization_data()
        assert data["tool"] == "marker"
        assert data["annotations"] == ()
        assert data["statistics"]["total"] == 0


class TestEventEmitter:
    def test_listener_errors_are_logged(self, caplog):
        emitter = EventEmitter()
        received = []

        def broken(event):
            raise RuntimeError("boom")

        emitter.on(EventType.TOOL_CHANGED, broken)
        emitter.on(EventType.TOOL_CHANGED, received.append)

        with caplog.at_level(logging.ERROR):
            emitter.emit(AnnotationEvent(EventType.TOOL_CHANGED))

        assert len(received) == 1
        assert "Error in event listener" in caplog.text

    def test_off_and_on_any(self):
        emitter = EventEmitter()
        received = []
        emitter.on_any(received.append)
        emitter.emit(AnnotationEvent(EventType.IMAGE_LOADED))
        emitter.off(EventType.IMAGE_LOADED, received.append)
        emitter.emit(AnnotationEvent(EventType.IMAGE_LOADED))
        emitter.emit(AnnotationEvent(EventType.SESSION_RESET))
        assert [e.event_type for e in received] == [
            EventType.IMAGE_LOADED,
            EventType.SESSION_RESET,
        ]
        assert received[0].data == {}
