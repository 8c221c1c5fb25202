"""Interaction event types."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


CIRCULAR_MARKER = "[Circular]"
UNSERIALIZABLE_MARKER = "[Unserializable]"


class EventTag(str, Enum):
    """
    Tag identifiers for every record the pipeline produces.

    Consumers filter on these values, so they are a stable contract.
    """
    CLICK = "[ClickLogger]"
    KEY = "[KeyLogger]"
    INPUT = "[InputLogger]"
    CHANGE = "[ChangeLogger]"
    SELECTION = "[SelectionLogger]"
    FOCUS = "[FocusLogger]"
    BLUR = "[BlurLogger]"
    COPY = "[CopyLogger]"
    CUT = "[CutLogger]"
    PASTE = "[PasteLogger]"
    SCROLL = "[ScrollLogger]"
    HOVER_ENTER = "[HoverEnter]"
    HOVER_LEAVE = "[HoverLeave]"
    MOUSE_SAMPLE = "[MouseSample]"
    RESIZE = "[ResizeLogger]"
    ORIENTATION = "[OrientationLogger]"
    NETWORK_STATUS = "[NetworkStatus]"
    BEFORE_UNLOAD = "[BeforeUnload]"
    VISIBILITY = "[VisibilityLogger]"
    PAGE_HIDE = "[PageHide]"
    FORM_SUBMIT = "[FormSubmitLogger]"
    DRAG_START = "[DragStart]"
    DRAG_OVER = "[DragOver]"
    DROP = "[Drop]"

    # Derived signals
    RAGE_CLICK = "[RageClick]"
    TYPING_SPEED = "[TypingSpeed]"

    # Pipeline bookkeeping
    BATCH = "[BatchLogger]"
    BATCH_TEARDOWN = "[BatchLogger-beforeunload]"
    INIT = "[ContentLoggerInit]"


@dataclass(frozen=True, slots=True)
class EventRecord:
    """
    A single shaped interaction record.

    `data` is the open extension map: producers put whatever JSON-shaped
    fields the event kind carries there.
    """
    tag: EventTag
    timestamp: datetime
    action_type: str | None = None
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def create(
        cls,
        tag: EventTag,
        data: dict[str, Any] | None = None,
        action_type: str | None = None,
        timestamp: datetime | None = None,
    ) -> EventRecord:
        """Factory method stamping the current UTC time."""
        return cls(
            tag=tag,
            timestamp=timestamp or datetime.now(timezone.utc),
            action_type=action_type,
            data=dict(data or {}),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "tag": self.tag.value,
            "timestamp": self.timestamp.isoformat(),
            "actionType": self.action_type,
            "payload": self.data,
        }


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    if hasattr(value, "to_dict"):
        try:
            return value.to_dict()
        except Exception:
            return UNSERIALIZABLE_MARKER
    return UNSERIALIZABLE_MARKER


def _break_cycles(value: Any, ancestors: frozenset[int]) -> Any:
    """Copy containers, replacing any reference back to an ancestor."""
    if isinstance(value, (dict, list, tuple)):
        if id(value) in ancestors:
            return CIRCULAR_MARKER
        inner = ancestors | {id(value)}
        if isinstance(value, dict):
            return {k: _break_cycles(v, inner) for k, v in value.items()}
        return [_break_cycles(v, inner) for v in value]
    return value


def safe_json_dumps(obj: Any) -> str:
    """
    Serialize to JSON text without ever raising.

    Cyclic references are replaced by a marker and values json cannot
    represent become a placeholder.
    """
    try:
        return json.dumps(obj, default=_json_default)
    except (ValueError, TypeError, RecursionError):
        # Circular reference, non-string keys or nesting too deep
        pass

    try:
        return json.dumps(
            _break_cycles(obj, frozenset()),
            default=_json_default,
            skipkeys=True,
        )
    except (ValueError, TypeError, RecursionError):
        return json.dumps(UNSERIALIZABLE_MARKER)
