"""Tests for rage-click and typing-cadence detection."""

from interaction_svc.capture.detectors import (
    ClickPoint,
    RageClickDetector,
    TypingCadenceTracker,
    Viewport,
)
from interaction_svc.capture.events import EventTag


class TestRageClickDetector:
    def test_three_close_clicks_emit_once(self):
        detector = RageClickDetector(viewport=Viewport(1280, 720))

        assert detector.on(ClickPoint(100, 100, 1000)) is None
        assert detector.on(ClickPoint(105, 102, 1100)) is None
        signal = detector.on(ClickPoint(102, 98, 1200))

        assert signal is not None
        assert signal.tag == EventTag.RAGE_CLICK
        assert signal.data["center"] == {"x": 102, "y": 98}
        assert signal.data["count"] == 3
        assert signal.data["windowSize"] == {"w": 1280, "h": 720}
        assert detector.window_size == 0

        # The window was cleared: one more close click is not a new burst
        assert detector.on(ClickPoint(101, 99, 1300)) is None
        assert detector.signals == 1

    def test_distant_clicks_do_not_trigger(self):
        detector = RageClickDetector()

        detector.on(ClickPoint(0, 0, 0))
        detector.on(ClickPoint(200, 0, 50))
        assert detector.on(ClickPoint(400, 0, 100)) is None

    def test_radius_is_inclusive(self):
        detector = RageClickDetector(radius_px=25)

        detector.on(ClickPoint(0, 0, 0))
        detector.on(ClickPoint(15, 20, 10))  # distance 25 from the third click
        assert detector.on(ClickPoint(0, 0, 20)) is not None

    def test_old_clicks_expire(self):
        detector = RageClickDetector(threshold_ms=600)

        detector.on(ClickPoint(10, 10, 0))
        detector.on(ClickPoint(10, 10, 100))
        assert detector.on(ClickPoint(10, 10, 800)) is None
        assert detector.window_size == 1

    def test_click_at_threshold_is_kept(self):
        detector = RageClickDetector(threshold_ms=600)

        detector.on(ClickPoint(10, 10, 0))
        detector.on(ClickPoint(10, 10, 300))
        assert detector.on(ClickPoint(10, 10, 600)) is not None

    def test_context_is_merged(self):
        detector = RageClickDetector(required_count=1)
        signal = detector.on(ClickPoint(1, 2, 0), {"pageUrl": "https://example.test/"})
        assert signal.data["pageUrl"] == "https://example.test/"

    def test_reset(self):
        detector = RageClickDetector()
        detector.on(ClickPoint(1, 1, 0))
        detector.reset()
        assert detector.window_size == 0


class TestTypingCadenceTracker:
    def test_21_keystrokes_emit_two_signals(self):
        tracker = TypingCadenceTracker()
        signals = [tracker.on("field", t * 100) for t in range(21)]

        emitted = [s for s in signals if s is not None]
        assert len(emitted) == 2
        assert signals[10] is emitted[0]
        assert signals[20] is emitted[1]
        assert emitted[0].tag == EventTag.TYPING_SPEED
        assert emitted[0].data["avgMsBetweenKeys"] == 100
        assert emitted[0].data["sampleCount"] == 10
        assert emitted[1].data["sampleCount"] == 20

    def test_first_keystroke_only_initializes(self):
        tracker = TypingCadenceTracker(report_every=1)
        assert tracker.on("field", 1000) is None
        assert tracker.subjects == 1
        assert tracker.on("field", 1250).data["avgMsBetweenKeys"] == 250

    def test_mean_is_rounded(self):
        tracker = TypingCadenceTracker(report_every=3)
        tracker.on("f", 0)
        tracker.on("f", 100)
        tracker.on("f", 200)
        signal = tracker.on("f", 301)
        # (100 + 100 + 101) / 3 = 100.33
        assert signal.data["avgMsBetweenKeys"] == 100

    def test_window_is_capped(self):
        tracker = TypingCadenceTracker(window=40, report_every=10)
        signals = [tracker.on("f", t * 50) for t in range(61)]

        last = [s for s in signals if s is not None][-1]
        assert last.data["sampleCount"] == 40

    def test_subjects_are_independent(self):
        tracker = TypingCadenceTracker(report_every=2)
        tracker.on("a", 0)
        tracker.on("b", 0)
        tracker.on("a", 100)
        tracker.on("b", 300)
        assert tracker.on("a", 200).data["avgMsBetweenKeys"] == 100
        assert tracker.on("b", 600).data["avgMsBetweenKeys"] == 300

    def test_target_in_signal(self):
        tracker = TypingCadenceTracker(report_every=1)
        tracker.on("f", 0)
        signal = tracker.on("f", 10, target={"tag": "INPUT", "id": "email"})
        assert signal.data["target"] == {"tag": "INPUT", "id": "email"}

    def test_least_recently_used_subject_evicted(self):
        tracker = TypingCadenceTracker(max_subjects=2, report_every=1)
        tracker.on("a", 0)
        tracker.on("b", 0)
        tracker.on("a", 10)   # "a" is now most recent
        tracker.on("c", 0)    # evicts "b"

        assert tracker.subjects == 2
        assert tracker.on("a", 20) is not None
        assert tracker.on("b", 50) is None  # re-initialized

    def test_forget(self):
        tracker = TypingCadenceTracker()
        tracker.on("f", 0)
        assert tracker.forget("f")
        assert not tracker.forget("f")
