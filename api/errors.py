class GenerationError(Exception):
    """Base class for failures on the generate path."""


class SubmissionError(GenerationError):
    def __init__(self, message: str, attempts: int):
        super().__init__(message)
        self.attempts = attempts


class WaitTimeoutError(GenerationError):
    pass


class RemoteExecutionError(GenerationError):
    def __init__(self, payload):
        super().__init__(f"Remote execution error: {payload!r}")
        self.payload = payload


class CompletionChannelError(GenerationError):
    """The notification connection failed before a terminal event arrived."""


class FetchError(GenerationError):
    def __init__(self, message: str, attempts: int):
        super().__init__(message)
        self.attempts = attempts


class TranscodeError(GenerationError):
    pass


class PoolError(Exception):
    pass


class NotFoundError(PoolError):
    def __init__(self, track_id: str):
        super().__init__(f"Track {track_id} not found")
        self.track_id = track_id


class TrackStateError(PoolError):
    pass


class CapacityError(PoolError):
    def __init__(self, max_tracks: int):
        super().__init__(f"Maximum tracks ({max_tracks}) reached")
        self.max_tracks = max_tracks
