"""Running brace/string state used to spot a structurally complete object."""

from __future__ import annotations


class StructureTracker:
    """
    Tracks brace depth, string state and backslash escapes over a growing
    buffer. Only newly appended text is scanned on each ``feed`` call, so the
    total work over a stream is linear in its length.

    Balance is necessary but not sufficient for a valid object; callers must
    still attempt a full parse.
    """

    def __init__(self) -> None:
        self.depth = 0
        self.in_string = False
        self.escaped = False  # previous char was an unescaped backslash
        self.seen_open = False
        self.seen_close = False
        self.scanned = 0
        self.closed_in_last_feed = False  # a "}" returned depth to zero in the last feed

    def feed(self, text: str) -> None:
        self.closed_in_last_feed = False
        for ch in text:
            if ch == '"' and not self.escaped:
                self.in_string = not self.in_string
            elif not self.in_string:
                if ch == "{":
                    self.depth += 1
                    self.seen_open = True
                elif ch == "}":
                    self.depth -= 1
                    self.seen_close = True
                    if self.depth == 0:
                        self.closed_in_last_feed = True
            self.escaped = ch == "\\" and not self.escaped
        self.scanned += len(text)

    @property
    def is_balanced(self) -> bool:
        return (
            self.depth == 0
            and not self.in_string
            and self.seen_open
            and self.seen_close
        )
