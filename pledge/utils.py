"""
Utility functions for the pledge library.
"""

from __future__ import annotations

import linecache
import os
import sys
from dataclasses import dataclass, field


def _is_site_package(path: str) -> bool:
    normalized = path.replace("\\", "/").lower()
    return "/site-packages/" in normalized


def _is_stdlib(path: str) -> bool:
    normalized = path.replace("\\", "/").lower()
    if normalized.startswith("<"):
        return False
    return (
        "/lib/python" in normalized
        or "/frameworks/python.framework" in normalized
        or "/.local/share/uv/python" in normalized
    )


def _is_pledge_internal(path: str) -> bool:
    normalized = path.replace("\\", "/").lower()
    return "/pledge/" in normalized and "/tests/" not in normalized


def _is_user_frame(path: str) -> bool:
    if path.startswith("<"):
        return True
    return not (_is_site_package(path) or _is_stdlib(path) or _is_pledge_internal(path))


# Environment variable to control debug mode
DEBUG_PLEDGES = os.environ.get("PLEDGE_DEBUG", "").lower() in ("1", "true", "yes")


@dataclass(frozen=True)
class FrameSummary:
    filename: str
    line: int
    function: str
    code: str | None = None

    def format(self) -> str:
        text = f'  File "{self.filename}", line {self.line}, in {self.function}'
        if self.code:
            text += f"\n    {self.code}"
        return text


@dataclass(frozen=True)
class CreationSite:
    """Where a pledge was created.

    ``stack`` is only populated when PLEDGE_DEBUG is set; otherwise the site
    holds the first frame outside of pledge's own modules.
    """

    filename: str
    line: int
    function: str
    code: str | None = None
    stack: tuple[FrameSummary, ...] = field(default_factory=tuple)

    def __str__(self) -> str:
        return f"{self.filename}:{self.line} in {self.function}"

    def format_stack(self) -> str:
        return "\n".join(frame.format() for frame in self.stack)


def _summarize(frame) -> FrameSummary:
    filename = frame.f_code.co_filename
    code = linecache.getline(filename, frame.f_lineno).strip() or None
    return FrameSummary(
        filename=filename,
        line=frame.f_lineno,
        function=frame.f_code.co_name,
        code=code,
    )


def capture_creation_site(skip_frames: int = 2) -> CreationSite | None:
    """
    Capture the stack context of the code creating a pledge.

    Args:
        skip_frames: Number of frames to skip (default 2 to skip this function and caller)

    Returns:
        CreationSite for the nearest user frame, or None when frames are unavailable
    """
    try:
        frame = sys._getframe(skip_frames)
    except ValueError:
        return None

    stack: list[FrameSummary] = []
    max_depth = 12
    user_frame = None
    current = frame
    depth = 0
    while current is not None and depth < max_depth:
        if user_frame is None and _is_user_frame(current.f_code.co_filename):
            user_frame = current
            if not DEBUG_PLEDGES:
                break
        if DEBUG_PLEDGES:
            stack.append(_summarize(current))
        current = current.f_back
        depth += 1

    site = _summarize(user_frame if user_frame is not None else frame)
    return CreationSite(
        filename=site.filename,
        line=site.line,
        function=site.function,
        code=site.code,
        stack=tuple(stack),
    )


def describe(value: object, limit: int = 60) -> str:
    """Short repr used in log records."""
    text = repr(value)
    if len(text) > limit:
        return text[: limit - 3] + "..."
    return text


__all__ = [
    "DEBUG_PLEDGES",
    "CreationSite",
    "FrameSummary",
    "capture_creation_site",
    "describe",
]
