"""Producer-side capture pipeline."""

from __future__ import annotations

import asyncio
import json
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Hashable

from . import __version__
from .capture.batcher import BatchReport
from .capture.detectors import ClickPoint, Viewport
from .capture.events import EventRecord, EventTag, safe_json_dumps
from .capture.registry import EventTarget
from .capture.timers import DebounceTimer, RepeatingTimer
from .collector.protocol import MessageType, make_request
from .collector.queue import now_ms
from .context import PipelineContext


logger = logging.getLogger(__name__)

PASSWORD_SUPPRESSED = "[PASSWORD_SUPPRESSED]"
UNSERIALIZABLE_FIELD = "[UNSERIALIZABLE]"

# Keys producers may add for the pipeline's own use; never recorded
_CONTROL_KEYS = ("subject", "node", "t")

# DOM event name -> handler method
EVENT_HANDLERS: dict[str, str] = {
    "click": "handle_click",
    "keydown": "handle_keydown",
    "input": "handle_input",
    "change": "handle_change",
    "selectionchange": "handle_selection_change",
    "focus": "handle_focus",
    "blur": "handle_blur",
    "copy": "handle_copy",
    "cut": "handle_cut",
    "paste": "handle_paste",
    "scroll": "handle_scroll",
    "mouseover": "handle_mouse_over",
    "mouseout": "handle_mouse_out",
    "mousemove": "handle_mouse_move",
    "resize": "handle_resize",
    "orientationchange": "handle_orientation",
    "online": "handle_online",
    "offline": "handle_offline",
    "beforeunload": "handle_before_unload",
    "visibilitychange": "handle_visibility",
    "pagehide": "handle_page_hide",
    "submit": "handle_form_submit",
    "dragstart": "handle_drag_start",
    "dragover": "handle_drag_over",
    "drop": "handle_drop",
}


def _shape(event: dict[str, Any], **extra: Any) -> dict[str, Any]:
    data = {k: v for k, v in event.items() if k not in _CONTROL_KEYS}
    data.update(extra)
    return data


def _is_password(event: dict[str, Any]) -> bool:
    target = event.get("target") or event.get("element") or {}
    return isinstance(target, dict) and str(target.get("type") or "").lower() == "password"


@dataclass
class InteractionPipeline:
    """
    Wires a hosted document to the capture components.

    `start` registers one listener per supported event name; each
    listener turns the shaped payload it receives into an EventRecord,
    feeds the detectors and hands everything to the batcher (and, with
    `send_to_collector`, to the collector queue).
    """
    context: PipelineContext
    page_url: str = ""

    _started: bool = field(default=False, init=False)
    _mouse_timer: RepeatingTimer | None = field(default=None, init=False)
    _scroll_timer: DebounceTimer | None = field(default=None, init=False)
    _resize_timer: DebounceTimer | None = field(default=None, init=False)
    _mouse_pos: tuple[float, float] = field(default=(0, 0), init=False)
    _mouse_moved: bool = field(default=False, init=False)
    _last_scroll: dict[str, float] = field(default_factory=dict, init=False)
    _scroll_pos: tuple[float, float] = field(default=(0, 0), init=False)
    _pending_size: tuple[int, int] | None = field(default=None, init=False)
    _hovered: set[Hashable] = field(default_factory=set, init=False)
    _forward_tasks: set[asyncio.Task] = field(default_factory=set, init=False)

    def __post_init__(self):
        capture = self.context.config.capture
        self._mouse_timer = RepeatingTimer(
            capture.sample_mouse_ms / 1000, self._sample_mouse, name="mouse-sample"
        )
        self._scroll_timer = DebounceTimer(
            capture.scroll_debounce_ms / 1000, self._on_scroll_settled, name="scroll"
        )
        self._resize_timer = DebounceTimer(
            capture.resize_debounce_ms / 1000, self._on_resize_settled, name="resize"
        )
        self._last_scroll = {"x": 0, "y": 0, "t": now_ms()}

    @property
    def flags(self):
        return self.context.config.features

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self, target: EventTarget, viewport: Viewport | None = None) -> bool:
        """
        Attach every listener and start the timers.

        Returns False if already started.
        """
        if self._started:
            return False

        if viewport is not None:
            self.context.rage_clicks.viewport = viewport

        if self.context.sink is not None:
            await self.context.sink.start()
        if self.flags.send_to_collector and self.context.bridge is not None:
            await self.context.bridge.start()

        for event_name, method in EVENT_HANDLERS.items():
            self.context.registry.add(target, event_name, getattr(self, method), {"capture": True})

        self.context.batcher.start()
        self._mouse_timer.start()
        self._started = True

        logger.info(f"Interaction pipeline started ({len(self.context.registry)} listeners)")
        self.log_event(EventTag.INIT, {"pageUrl": self.page_url, "version": __version__})
        return True

    async def stop_all(self) -> None:
        """Remove every listener, stop the timers and flush what is pending."""
        self.context.registry.remove_all()
        self._mouse_timer.stop()
        self._scroll_timer.cancel()
        self._resize_timer.cancel()
        await self.context.batcher.stop()

        if self._forward_tasks:
            await asyncio.gather(*self._forward_tasks, return_exceptions=True)

        if self.context.sink is not None:
            await self.context.sink.stop()
        if self.context.bridge is not None:
            await self.context.bridge.stop()

        self._started = False
        logger.info("Interaction pipeline stopped")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def log_event(
        self,
        tag: EventTag,
        data: dict[str, Any] | None = None,
        action_type: str | None = None,
    ) -> EventRecord:
        """Record one event: log it, forward it, batch it."""
        record = EventRecord.create(tag, data, action_type=action_type)
        self._emit(record)
        return record

    async def flush_batch(self, include_payload: bool = False) -> BatchReport | None:
        return await self.context.batcher.flush(include_payload)

    @property
    def pending_batch_count(self) -> int:
        return self.context.batcher.pending_count

    def set_feature(self, name: str, value: bool) -> bool:
        """Toggle a feature flag. Raises UnknownFeatureError for unknown names."""
        result = self.flags.set(name, value)
        if name == "batching":
            self.context.batcher.enabled = result
        elif name == "hover" and not result:
            self._hovered.clear()
        return result

    def init_summary(self) -> dict[str, Any]:
        return {
            "version": __version__,
            "url": self.page_url,
            "listeners": len(self.context.registry),
            "started": self._started,
        }

    def _emit(self, record: EventRecord) -> None:
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"{record.tag.value} {safe_json_dumps(record.data)}")

        if self.flags.send_to_collector and self.context.bridge is not None:
            self._forward(record)

        self.context.batcher.enqueue(record)

    def _forward(self, record: EventRecord) -> None:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"No event loop, not forwarding {record.tag.value}")
            return
        # Substitute markers up front; the channels encode with plain json
        payload = json.loads(safe_json_dumps(record.to_dict()))
        message = make_request(MessageType.ENQUEUE, payload=payload)
        task = self.context.bridge.send_nowait(message)
        self._forward_tasks.add(task)
        task.add_done_callback(self._forward_tasks.discard)

    def _page(self, event: dict[str, Any], **extra: Any) -> dict[str, Any]:
        return _shape(event, pageUrl=self.page_url, **extra)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def handle_click(self, event: dict[str, Any]) -> None:
        if not self.flags.click:
            return
        self.log_event(EventTag.CLICK, self._page(event), action_type="click")

        if self.flags.rage_click:
            click = ClickPoint(
                x=event.get("clientX", 0),
                y=event.get("clientY", 0),
                t=event.get("t") or now_ms(),
            )
            signal = self.context.rage_clicks.on(click, {"pageUrl": self.page_url})
            if signal is not None:
                self._emit(signal)

    def handle_keydown(self, event: dict[str, Any]) -> None:
        if not self.flags.keydown:
            return

        subject = event.get("subject")
        if self.flags.typing_speed and subject is not None:
            signal = self.context.typing.on(
                subject,
                event.get("t") or now_ms(),
                target=event.get("element") if isinstance(event.get("element"), dict) else None,
                context={"pageUrl": self.page_url},
            )
            if signal is not None:
                self._emit(signal)

        data = self._page(event)
        action_type = "key"
        if _is_password(event):
            data.pop("valueBefore", None)
            data.pop("valueAfter", None)
        elif "valueBefore" in event:
            if event.get("valueAfter") != event.get("valueBefore"):
                action_type = "typing"
        self.log_event(EventTag.KEY, data, action_type=action_type)

    def _field_event(self, tag: EventTag, action_type: str, event: dict[str, Any]) -> None:
        data = self._page(event)
        if _is_password(event):
            data.pop("value", None)
        self.log_event(tag, data, action_type=action_type)

    def handle_input(self, event: dict[str, Any]) -> None:
        if self.flags.input:
            self._field_event(EventTag.INPUT, "input", event)

    def handle_change(self, event: dict[str, Any]) -> None:
        if self.flags.change:
            self._field_event(EventTag.CHANGE, "change", event)

    def handle_selection_change(self, event: dict[str, Any]) -> None:
        if not self.flags.selection:
            return
        text = event.get("selectedText") or ""
        if not text.strip():
            return
        self.log_event(EventTag.SELECTION, self._page(event), action_type="selection")

    def handle_focus(self, event: dict[str, Any]) -> None:
        if self.flags.focus_blur:
            self.log_event(EventTag.FOCUS, self._page(event), action_type="focus")

    def handle_blur(self, event: dict[str, Any]) -> None:
        if self.flags.focus_blur:
            self.log_event(EventTag.BLUR, self._page(event), action_type="blur")

    def handle_copy(self, event: dict[str, Any]) -> None:
        if self.flags.copy_cut_paste:
            self.log_event(EventTag.COPY, self._page(event), action_type="copy")

    def handle_cut(self, event: dict[str, Any]) -> None:
        if self.flags.copy_cut_paste:
            self.log_event(EventTag.CUT, self._page(event), action_type="cut")

    def handle_paste(self, event: dict[str, Any]) -> None:
        if self.flags.copy_cut_paste:
            data = self._page(event)
            data.setdefault("pastedText", None)
            self.log_event(EventTag.PASTE, data, action_type="paste")

    def handle_scroll(self, event: dict[str, Any]) -> None:
        if not self.flags.scroll:
            return
        self._scroll_pos = (event.get("x", 0), event.get("y", 0))
        self._scroll_timer.trigger()

    def _on_scroll_settled(self) -> None:
        if not self.flags.scroll:
            return
        now = now_ms()
        x, y = self._scroll_pos
        dx = x - self._last_scroll["x"]
        dy = y - self._last_scroll["y"]
        dt = max(1, now - self._last_scroll["t"])
        self.log_event(EventTag.SCROLL, {
            "pageUrl": self.page_url,
            "position": {"x": x, "y": y},
            "delta": {"dx": dx, "dy": dy},
            "speedPxPerMs": math.hypot(dx, dy) / dt,
        }, action_type="scroll")
        self._last_scroll = {"x": x, "y": y, "t": now}

    def _hover_key(self, event: dict[str, Any]) -> Hashable | None:
        key = event.get("node")
        if key is None:
            target = event.get("target") or {}
            key = target.get("cssPath") or target.get("id") if isinstance(target, dict) else None
        return key

    def handle_mouse_over(self, event: dict[str, Any]) -> None:
        if not self.flags.hover:
            return
        key = self._hover_key(event)
        if key is None or key in self._hovered:
            return
        self._hovered.add(key)
        self.log_event(EventTag.HOVER_ENTER, self._page(event), action_type="hover_enter")

    def handle_mouse_out(self, event: dict[str, Any]) -> None:
        if not self.flags.hover:
            return
        key = self._hover_key(event)
        if key is None or key not in self._hovered:
            return
        self._hovered.discard(key)
        self.log_event(EventTag.HOVER_LEAVE, self._page(event), action_type="hover_leave")

    def handle_mouse_move(self, event: dict[str, Any]) -> None:
        if not self.flags.mouse_sampling:
            return
        self._mouse_pos = (event.get("clientX", 0), event.get("clientY", 0))
        self._mouse_moved = True

    def _sample_mouse(self) -> None:
        if not self.flags.mouse_sampling or not self._mouse_moved:
            return
        self._mouse_moved = False
        x, y = self._mouse_pos
        self.context.batcher.enqueue(
            EventRecord.create(EventTag.MOUSE_SAMPLE, {"x": x, "y": y}, action_type="mouse_sample")
        )

    def handle_resize(self, event: dict[str, Any]) -> None:
        if not self.flags.resize_orientation:
            return
        self._pending_size = (event.get("width", 0), event.get("height", 0))
        self._resize_timer.trigger()

    def _on_resize_settled(self) -> None:
        if self._pending_size is None:
            return
        width, height = self._pending_size
        self._pending_size = None
        self.context.rage_clicks.viewport = Viewport(width=width, height=height)
        self.log_event(EventTag.RESIZE, {
            "pageUrl": self.page_url,
            "size": {"width": width, "height": height},
        }, action_type="resize")

    def handle_orientation(self, event: dict[str, Any]) -> None:
        if self.flags.resize_orientation:
            self.log_event(EventTag.ORIENTATION, self._page(event), action_type="orientation")

    def handle_online(self, event: dict[str, Any]) -> None:
        if self.flags.network_status:
            self.log_event(EventTag.NETWORK_STATUS, self._page(event, action="online"))

    def handle_offline(self, event: dict[str, Any]) -> None:
        if self.flags.network_status:
            self.log_event(EventTag.NETWORK_STATUS, self._page(event, action="offline"))

    def handle_before_unload(self, event: dict[str, Any]) -> None:
        if not self.flags.before_unload:
            return
        if self.flags.batching:
            self.context.batcher.flush_on_teardown()
        self.log_event(EventTag.BEFORE_UNLOAD, self._page(event))

    def handle_visibility(self, event: dict[str, Any]) -> None:
        if self.flags.before_unload:
            self.log_event(EventTag.VISIBILITY, self._page(event))

    def handle_page_hide(self, event: dict[str, Any]) -> None:
        if self.flags.before_unload:
            self.log_event(EventTag.PAGE_HIDE, self._page(event))

    def handle_form_submit(self, event: dict[str, Any]) -> None:
        if not self.flags.form_submit:
            return
        max_chars = self.context.config.capture.form_field_max_chars
        fields: dict[str, str] = {}
        for entry in event.get("fields") or []:
            name = entry.get("name")
            if name is None:
                continue
            if str(entry.get("type") or "").lower() == "password":
                fields[name] = PASSWORD_SUPPRESSED
                continue
            try:
                fields[name] = str(entry.get("value"))[:max_chars]
            except Exception:
                fields[name] = UNSERIALIZABLE_FIELD

        data = self._page(event)
        data["fields"] = fields
        self.log_event(EventTag.FORM_SUBMIT, data, action_type="form_submit")

    def handle_drag_start(self, event: dict[str, Any]) -> None:
        if self.flags.drag_drop:
            self.log_event(EventTag.DRAG_START, self._page(event), action_type="drag_start")

    def handle_drag_over(self, event: dict[str, Any]) -> None:
        if self.flags.drag_drop:
            self.log_event(EventTag.DRAG_OVER, self._page(event), action_type="drag_over")

    def handle_drop(self, event: dict[str, Any]) -> None:
        if self.flags.drag_drop:
            self.log_event(EventTag.DROP, self._page(event), action_type="drop")
