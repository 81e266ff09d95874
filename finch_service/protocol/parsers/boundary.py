from finch_service.core.logging import logger
from finch_service.protocol.parsers.tool_calls import TOOL_CALL_OPEN


class StreamBoundaryDetector:
    """
    Incremental scanner deciding which streamed text may reach a live listener.
    - Everything before the first '<tool_call>' marker is prose and is forwarded
    - A trailing fragment that could be the start of a split marker is held
      back until the next chunk (or finalize) disambiguates it
    - Once the marker is seen nothing else from this response is forwarded
    One detector per model response; call reset() before reusing it.
    """

    MARKER = TOOL_CALL_OPEN

    def __init__(self):
        self.buf = ""
        self._emitted = 0
        self._tool_call_detected = False
        self._marker_pos = -1

    @property
    def tool_call_detected(self) -> bool:
        return self._tool_call_detected

    @property
    def text(self) -> str:
        """All text fed so far, including withheld markup."""
        return self.buf

    @property
    def marker_position(self) -> int:
        return self._marker_pos

    def _held_suffix_len(self) -> int:
        # longest buffer suffix that is a proper prefix of the marker
        max_len = min(len(self.MARKER) - 1, len(self.buf))
        for n in range(max_len, 0, -1):
            if self.MARKER.startswith(self.buf[-n:]):
                return n
        return 0

    def feed(self, chunk: str) -> str:
        """Ingest one chunk and return the part that is safe to show now."""
        if not chunk:
            return ""
        self.buf += chunk
        if self._tool_call_detected:
            return ""

        # the marker can only start at or after the first unforwarded char
        idx = self.buf.find(self.MARKER, self._emitted)
        if idx != -1:
            out = self.buf[self._emitted : idx]
            self._emitted = idx
            self._marker_pos = idx
            self._tool_call_detected = True
            logger.debug(f"Boundary: tool call marker at offset {idx}, withholding remainder")
            return out

        safe_end = len(self.buf) - self._held_suffix_len()
        out = self.buf[self._emitted : safe_end]
        self._emitted = safe_end
        return out

    def finalize(self) -> str:
        """Release any held-back fragment once the response is complete."""
        if self._tool_call_detected:
            return ""
        out = self.buf[self._emitted :]
        self._emitted = len(self.buf)
        return out

    def reset(self) -> None:
        self.buf = ""
        self._emitted = 0
        self._tool_call_detected = False
        self._marker_pos = -1
