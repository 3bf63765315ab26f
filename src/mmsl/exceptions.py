class MmslError(Exception):
    """Base exception for mmsl."""


class InputError(MmslError):
    """Raised when an input document cannot be read."""

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Cannot read {source}: {reason}")


class TempoMapConflict(MmslError):
    """Raised when tempo segments overlap, are out of order or have no valid bpm."""

    def __init__(self, reason: str, start_beat: float | None = None):
        self.reason = reason
        self.start_beat = start_beat
        super().__init__(f"Tempo map conflict: {reason}")
