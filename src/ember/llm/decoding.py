"""Incremental decoding of the model's output stream."""

from __future__ import annotations

import codecs


class Utf8CarryDecoder:
    """Decode UTF-8 arriving in arbitrary byte chunks.

    Multi-byte characters split across chunks are carried until complete, so
    a fragment never ends in half a character. Invalid bytes become U+FFFD.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def feed(self, data: bytes) -> str:
        """Return the text decodable so far; incomplete trailing bytes are kept."""
        return self._decoder.decode(data)

    def flush(self) -> str:
        """Decode whatever is still carried, replacing an incomplete tail."""
        return self._decoder.decode(b"", final=True)


class RepetitionGuard:
    """Detect a model stuck emitting the same fragment over and over.

    ``observe()`` returns True once a fragment longer than *min_length* has
    arrived *max_repeats* more times in a row after its first appearance.
    Short fragments (single tokens, whitespace) never count.
    """

    def __init__(self, min_length: int = 20, max_repeats: int = 3) -> None:
        self.min_length = min_length
        self.max_repeats = max_repeats
        self._last: str | None = None
        self._repeats = 0

    def observe(self, fragment: str) -> bool:
        if fragment == self._last and len(fragment) > self.min_length:
            self._repeats += 1
        else:
            self._repeats = 0
        self._last = fragment
        return self._repeats >= self.max_repeats
