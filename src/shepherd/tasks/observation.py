"""Isolating fresh session output for the task engine.

Captures are a sliding window over the pane: once it scrolls, the previous
capture is no longer a prefix of the current one. Sessions also echo the
messages the dispatcher types into them, usually behind a prompt marker and
wrapped to the pane width.
"""

from __future__ import annotations

__all__ = ["appended_text", "strip_echo"]

_ECHO_DECORATION = " \t>│|"

#: Shorter echo lines must equal a sent line rather than appear inside one
MIN_ECHO_FRAGMENT = 8


def _screen_lines(text: str) -> list[str]:
    return [line.rstrip() for line in text.rstrip().splitlines()]


def appended_text(previous: str, current: str) -> str:
    """Return the part of ``current`` that was not on screen in ``previous``.

    When ``previous`` is not a prefix, the largest run of its last lines that
    also starts ``current`` is located and only the lines after that run are
    returned. The last line of the run may have grown (a prompt being typed
    into), in which case its new tail is included. Without any overlap the
    result is empty.

    Example:
        >>> appended_text("a\\nb\\nc", "b\\nc\\nd")
        'd'
        >>> appended_text("a\\nb", "x\\ny")
        ''
    """
    if current.startswith(previous):
        return current[len(previous) :]
    before = _screen_lines(previous)
    after = _screen_lines(current)
    if not before:
        return "\n".join(after)

    for size in range(min(len(before), len(after)), 0, -1):
        if before[-size] != after[0] and size > 1:
            continue
        if after[: size - 1] != before[-size:-1]:
            continue
        joint, last = after[size - 1], before[-1]
        if joint == last:
            return "\n".join(after[size:])
        if size > 1 and last and joint.startswith(last):
            return "\n".join([joint[len(last) :], *after[size:]])
    return ""


def strip_echo(text: str, message: str | None) -> str:
    """Remove lines of ``text`` that repeat a line of ``message``.

    A line is echo when, without prompt decoration, it equals a message line
    or (if at least :data:`MIN_ECHO_FRAGMENT` characters) is contained in
    one, which covers wrapped lines.
    """
    if not message:
        return text
    sent = [line.strip(_ECHO_DECORATION) for line in message.splitlines()]
    sent = [line for line in sent if line]
    kept: list[str] = []
    for line in text.splitlines():
        content = line.strip(_ECHO_DECORATION)
        if content and (
            content in sent
            or (
                len(content) >= MIN_ECHO_FRAGMENT
                and any(content in sent_line for sent_line in sent)
            )
        ):
            continue
        kept.append(line)
    return "\n".join(kept)
