"""
Unit tests for the batch capture controller.
"""

import threading
from typing import List
from unittest import mock

import pytest

from depthcam.batch.controller import BatchController
from depthcam.batch.state import BatchSnapshot, BatchState
from depthcam.camera.base import AuthorizationStatus
from depthcam.camera.mock_camera import MockCamera
from depthcam.errors import (
    AlreadySendingError,
    BatchFullError,
    BatchNotReadyError,
    CaptureFailed,
    InvalidData,
    InvalidResponse,
    PermissionDenied,
)
from depthcam.sync.client import UploadClient
from depthcam.sync.multipart import decode_multipart

from .conftest import ENDPOINT, ScriptedSession, fake_response, make_png


class TestCapture:
    """Tests for filling the batch."""

    def test_initial_state(self, controller: BatchController) -> None:
        assert controller.state is BatchState.IDLE
        assert controller.count == 0
        assert controller.result is None
        assert controller.error is None

    def test_first_capture_moves_to_capturing(self, controller: BatchController) -> None:
        assert controller.capture() == 1
        assert controller.state is BatchState.CAPTURING

    def test_fifth_capture_fills_and_pauses(self, controller: BatchController,
                                            camera: ScriptedSession) -> None:
        for expected in range(1, 5):
            assert controller.capture() == expected
            assert controller.state is BatchState.CAPTURING
        assert controller.capture() == 5
        assert controller.state is BatchState.FULL
        assert camera.pause_calls == 1
        assert not camera.running

    def test_images_kept_in_capture_order(self, full_controller: BatchController) -> None:
        assert [len(img) for img in full_controller.buffer] == [10, 20, 30, 40, 50]

    def test_capture_when_full_raises(self, full_controller: BatchController,
                                      camera: ScriptedSession) -> None:
        for _ in range(3):
            with pytest.raises(BatchFullError):
                full_controller.capture()
        assert full_controller.count == 5
        assert full_controller.state is BatchState.FULL
        assert camera.taken == 5

    def test_capture_allowed_again_after_remove_last(self, full_controller: BatchController) -> None:
        full_controller.remove_last()
        assert full_controller.capture() == 5
        assert full_controller.state is BatchState.FULL

    def test_capture_failure_is_surfaced(self, controller: BatchController,
                                         camera: ScriptedSession) -> None:
        controller.capture()
        camera.fail_next = CaptureFailed("sensor glitch")
        with pytest.raises(CaptureFailed):
            controller.capture()
        assert controller.state is BatchState.FAILED
        assert isinstance(controller.error, CaptureFailed)
        assert controller.count == 1

    def test_unexpected_capture_error_wrapped(self, controller: BatchController,
                                              camera: ScriptedSession) -> None:
        camera.fail_next = RuntimeError("device vanished")
        with pytest.raises(CaptureFailed) as excinfo:
            controller.capture()
        assert isinstance(excinfo.value.__cause__, RuntimeError)
        assert controller.state is BatchState.FAILED

    def test_capture_recovers_after_failure(self, controller: BatchController,
                                            camera: ScriptedSession) -> None:
        camera.fail_next = CaptureFailed("once")
        with pytest.raises(CaptureFailed):
            controller.capture()
        assert controller.capture() == 1
        assert controller.state is BatchState.CAPTURING
        assert controller.error is None

    def test_buffer_never_exceeds_capacity_concurrently(self, controller: BatchController) -> None:
        errors: List[Exception] = []

        def shoot() -> None:
            for _ in range(5):
                try:
                    controller.capture()
                except BatchFullError as exc:
                    errors.append(exc)

        threads = [threading.Thread(target=shoot) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert controller.count == 5
        assert len(errors) == 15


class TestRemoveLast:
    """Tests for discarding the latest photo."""

    def test_from_full_resumes_session(self, full_controller: BatchController,
                                       camera: ScriptedSession) -> None:
        assert full_controller.remove_last() == 4
        assert full_controller.state is BatchState.CAPTURING
        assert camera.resume_calls == 1
        assert camera.running

    def test_on_empty_is_noop(self, controller: BatchController, camera: ScriptedSession) -> None:
        listener = mock.Mock()
        controller.subscribe(listener)
        assert controller.remove_last() == 0
        assert controller.state is BatchState.IDLE
        assert camera.resume_calls == 0
        listener.assert_not_called()

    def test_last_image_back_to_idle(self, controller: BatchController) -> None:
        controller.capture()
        assert controller.remove_last() == 0
        assert controller.state is BatchState.IDLE

    def test_removes_most_recent(self, controller: BatchController) -> None:
        controller.capture()
        controller.capture()
        controller.remove_last()
        assert [len(img) for img in controller.buffer] == [10]

    def test_from_resulted_clears_result(self, full_controller: BatchController) -> None:
        full_controller.send()
        full_controller.remove_last()
        assert full_controller.state is BatchState.CAPTURING
        assert full_controller.result is None
        assert full_controller.count == 4


class TestReset:
    """Tests for discarding the batch."""

    def test_reset_from_idle(self, controller: BatchController) -> None:
        controller.reset()
        assert controller.state is BatchState.IDLE
        assert controller.count == 0

    def test_reset_from_full_resumes(self, full_controller: BatchController,
                                     camera: ScriptedSession) -> None:
        full_controller.reset()
        assert full_controller.state is BatchState.IDLE
        assert full_controller.count == 0
        assert camera.running

    def test_reset_from_resulted(self, full_controller: BatchController) -> None:
        full_controller.send()
        full_controller.reset()
        assert full_controller.state is BatchState.IDLE
        assert full_controller.result is None
        assert full_controller.count == 0

    def test_reset_from_failed(self, full_controller: BatchController, http: mock.Mock) -> None:
        http.post.return_value = fake_response(500)
        with pytest.raises(InvalidResponse):
            full_controller.send()
        full_controller.reset()
        assert full_controller.state is BatchState.IDLE
        assert full_controller.error is None
        assert full_controller.count == 0

    def test_reset_during_capture_discards_photo(self, camera: ScriptedSession,
                                                  client: UploadClient) -> None:
        controller = BatchController(camera, client, ENDPOINT)
        original = camera.request_photo

        def photo_with_reset() -> bytes:
            blob = original()
            controller.reset()
            return blob

        camera.request_photo = photo_with_reset
        assert controller.capture() == 0
        assert controller.state is BatchState.IDLE


class TestSend:
    """Tests for uploading the batch."""

    def test_success_scenario(self, full_controller: BatchController, http: mock.Mock) -> None:
        assert full_controller.state is BatchState.FULL
        depth = full_controller.send()
        assert full_controller.state is BatchState.RESULTED
        assert full_controller.result is depth
        assert full_controller.count == 5
        http.post.assert_called_once()

    def test_body_carries_batch_in_order(self, full_controller: BatchController,
                                         http: mock.Mock) -> None:
        full_controller.send()
        args, kwargs = http.post.call_args
        assert args[0] == ENDPOINT
        boundary = kwargs["headers"]["Content-Type"].split("boundary=", 1)[1]
        parts = decode_multipart(kwargs["data"], boundary)
        assert [p.field_name for p in parts] == ["image1", "image2", "image3", "image4", "image5"]
        assert [p.data for p in parts] == list(full_controller.buffer)

    def test_server_error_keeps_batch(self, full_controller: BatchController,
                                      http: mock.Mock) -> None:
        http.post.return_value = fake_response(500)
        with pytest.raises(InvalidResponse):
            full_controller.send()
        assert full_controller.state is BatchState.FAILED
        assert isinstance(full_controller.error, InvalidResponse)
        assert full_controller.count == 5

    def test_bad_body_fails_with_invalid_data(self, full_controller: BatchController,
                                              http: mock.Mock) -> None:
        http.post.return_value = fake_response(200, b"<html>not an image</html>")
        with pytest.raises(InvalidData):
            full_controller.send()
        assert full_controller.state is BatchState.FAILED

    def test_retry_after_failure(self, full_controller: BatchController, http: mock.Mock) -> None:
        http.post.return_value = fake_response(503)
        with pytest.raises(InvalidResponse):
            full_controller.send()
        http.post.return_value = fake_response(200, make_png())
        full_controller.send()
        assert full_controller.state is BatchState.RESULTED
        assert full_controller.error is None
        assert http.post.call_count == 2

    @pytest.mark.parametrize("count", [0, 1, 4])
    def test_incomplete_batch_makes_no_request(self, controller: BatchController,
                                               http: mock.Mock, count: int) -> None:
        for _ in range(count):
            controller.capture()
        state_before = controller.state
        with pytest.raises(BatchNotReadyError):
            controller.send()
        http.post.assert_not_called()
        assert controller.state is state_before

    def test_send_while_sending_rejected(self, full_controller: BatchController,
                                         http: mock.Mock) -> None:
        started = threading.Event()
        release = threading.Event()

        def slow_post(*args, **kwargs):
            started.set()
            release.wait(5)
            return fake_response(200, make_png())

        http.post.side_effect = slow_post
        worker = threading.Thread(target=full_controller.send)
        worker.start()
        assert started.wait(5)
        assert full_controller.state is BatchState.SENDING
        with pytest.raises(AlreadySendingError):
            full_controller.send()
        with pytest.raises(AlreadySendingError):
            full_controller.capture()
        with pytest.raises(AlreadySendingError):
            full_controller.remove_last()
        release.set()
        worker.join(5)
        assert full_controller.state is BatchState.RESULTED
        assert http.post.call_count == 1

    def test_no_resend_after_result(self, full_controller: BatchController,
                                    http: mock.Mock) -> None:
        full_controller.send()
        with pytest.raises(BatchNotReadyError):
            full_controller.send()
        assert http.post.call_count == 1
        assert full_controller.state is BatchState.RESULTED
        assert full_controller.result is not None

    def test_reset_during_send_discards_result(self, full_controller: BatchController,
                                               http: mock.Mock) -> None:
        def post_then_reset(*args, **kwargs):
            full_controller.reset()
            return fake_response(200, make_png())

        http.post.side_effect = post_then_reset
        full_controller.send()
        assert full_controller.state is BatchState.IDLE
        assert full_controller.result is None


class TestObservers:
    """Tests for state publication."""

    def test_listener_sees_each_transition(self, controller: BatchController) -> None:
        seen: List[BatchSnapshot] = []
        controller.subscribe(seen.append)
        for _ in range(5):
            controller.capture()
        controller.send()
        states = [s.state for s in seen]
        assert states == [BatchState.CAPTURING] * 4 + [
            BatchState.FULL, BatchState.SENDING, BatchState.RESULTED]
        assert [s.count for s in seen[:5]] == [1, 2, 3, 4, 5]
        assert seen[-1].result is not None

    def test_unsubscribe(self, controller: BatchController) -> None:
        listener = mock.Mock()
        controller.subscribe(listener)
        controller.unsubscribe(listener)
        controller.capture()
        listener.assert_not_called()

    def test_failing_listener_does_not_break_controller(self, controller: BatchController) -> None:
        controller.subscribe(mock.Mock(side_effect=ValueError("ui bug")))
        assert controller.capture() == 1

    def test_snapshot_is_taken(self, controller: BatchController) -> None:
        assert not controller.snapshot().is_taken
        controller.capture()
        assert controller.snapshot().is_taken


class TestStart:
    """Tests for authorization at startup."""

    def test_start_authorized(self, client: UploadClient) -> None:
        camera = MockCamera(image_width=32, image_height=24)
        controller = BatchController(camera, client, ENDPOINT)
        controller.start()
        assert camera.running
        assert controller.capture() == 1

    def test_start_requests_access(self, client: UploadClient) -> None:
        camera = MockCamera(authorization=AuthorizationStatus.NOT_DETERMINED, grant_access=True)
        BatchController(camera, client, ENDPOINT).start()
        assert camera.authorization is AuthorizationStatus.AUTHORIZED

    @pytest.mark.parametrize("status,grant", [
        (AuthorizationStatus.DENIED, True),
        (AuthorizationStatus.RESTRICTED, True),
        (AuthorizationStatus.NOT_DETERMINED, False),
    ])
    def test_start_denied(self, client: UploadClient, status: AuthorizationStatus, grant: bool) -> None:
        camera = MockCamera(authorization=status, grant_access=grant)
        with pytest.raises(PermissionDenied):
            BatchController(camera, client, ENDPOINT).start()
        assert not camera.running
