from typing import Any


class BackdropError(Exception):
    """Base exception for all backdrop errors."""

    def __init__(self, message: str):
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {"detail": str(self)}


class TaskError(BackdropError):
    """Raised when a render task cannot be built from the submitted parts."""


class IncompleteTaskError(TaskError):
    def __init__(self, missing: list[str]):
        super().__init__(f"Render task is missing: {', '.join(missing)}")
        self.missing = missing


class DuplicateAssetError(TaskError):
    def __init__(self, kind: str):
        super().__init__(f"Render task already has an {kind} asset")
        self.kind = kind


class AssetTooLargeError(TaskError):
    def __init__(self, kind: str, size: int, limit: int):
        super().__init__(f"{kind} asset is {size} bytes, limit is {limit}")
        self.kind = kind
        self.size = size
        self.limit = limit


class RecoverableRenderError(BackdropError):
    """A failure that aborts the current attempt but leaves the task retryable."""


class AssetFetchError(RecoverableRenderError):
    def __init__(self, blob_id: str, reason: str):
        super().__init__(f"Failed to fetch asset {blob_id}: {reason}")
        self.blob_id = blob_id


class EncoderError(RecoverableRenderError):
    """Raised when ffmpeg/ffprobe cannot be spawned, exits non-zero or produces nothing."""

    def __init__(self, message: str, *, exit_code: int | None = None, stderr: str = ""):
        super().__init__(message)
        self.exit_code = exit_code
        self.stderr = stderr

    def to_dict(self) -> dict[str, Any]:
        return {"detail": str(self), "exit_code": self.exit_code, "stderr": self.stderr}


class CommitError(RecoverableRenderError):
    def __init__(self, target: str, reason: str):
        super().__init__(f"Failed to commit result for {target}: {reason}")
        self.target = target


class ResultNotFoundError(BackdropError):
    def __init__(self, result_id: str):
        super().__init__(f"Result {result_id!r} not found")
        self.result_id = result_id

    def to_dict(self) -> dict[str, Any]:
        return {"detail": str(self), "result_id": self.result_id}
