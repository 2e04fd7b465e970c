"""Incremental output extraction from full tmux pane captures.

capture-pane always returns a full redraw of the pane plus scrollback, never
an incremental feed. diff_output() recovers "what appeared since the last
capture" so callers can stream it. The general path is a line-membership
heuristic: duplicate lines in the previous capture can make it skip or repeat
a line, and callers must tolerate that.
"""

# Characters of the previous capture used for the append fast path
DEFAULT_TAIL_SIZE = 500


def _significant_lines(text: str) -> list[str]:
    return text.strip().split("\n")


def diff_output(
    previous: str | None,
    current: str,
    tail_size: int = DEFAULT_TAIL_SIZE,
) -> str | None:
    """Compute the text in ``current`` that was not present in ``previous``.

    Args:
        previous: The prior full capture ("" or None on first observation)
        current: The new full capture of the same pane
        tail_size: Suffix length of ``previous`` used by the append fast path

    Returns:
        The new content, or None when nothing new appeared
    """
    if not previous or previous == current:
        return None

    # Fast path: pure growth that still ends with the old tail
    if len(current) > len(previous) and current.endswith(previous[-tail_size:]):
        return current[: len(current) - len(previous)]

    previous_lines = set(_significant_lines(previous))
    current_lines = _significant_lines(current)

    diff_start = 0
    for line in current_lines:
        if line not in previous_lines:
            break
        diff_start += 1

    new_content = "\n".join(current_lines[diff_start:]).strip()
    return new_content or None
