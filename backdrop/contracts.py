"""Contracts for Redis keys, queues, and render tasks."""

import uuid
from enum import StrEnum
from typing import Final, Literal

from pydantic import BaseModel, ConfigDict, Field

from backdrop.exceptions import DuplicateAssetError, IncompleteTaskError

RENDER_QUEUE: Final[str] = "render-worker-queue"  # list: LPUSH tail, RPOP head
RENDER_ATTEMPTS: Final[str] = "render-worker-attempts"  # hash: target -> failed attempts
RENDER_DLQ: Final[str] = "render-worker-dlq"  # list of abandoned tasks

# progress marker values
PENDING: Final[str] = "pending"
GONE: Final[str] = "gone"
READY: Final[str] = "ready"

DLQ_TTL_SECONDS: Final[int] = 7 * 24 * 3600


class AssetKind(StrEnum):
    AUDIO = "audio"
    IMAGE = "image"

    @property
    def suffix(self) -> str:
        return ".mp3" if self is AssetKind.AUDIO else ".png"


class RenderTask(BaseModel):
    """JSON contract between producer and render worker."""

    target: uuid.UUID  # progress marker key
    audio: uuid.UUID
    image: uuid.UUID

    model_config = ConfigDict(frozen=True, extra="forbid")

    @property
    def log_context(self) -> dict[str, str]:
        return {"target": str(self.target), "audio": str(self.audio), "image": str(self.image)}


class RenderTaskBuilder:
    """Collects the parts of an upload and yields a task once both assets are present.

    Upload fields arrive in any order, so parts are added one at a time and
    `build()` refuses to produce a task until exactly one audio and one image
    have been added.
    """

    def __init__(self, target: uuid.UUID | None = None):
        self._target = target or uuid.uuid4()
        self._audio: uuid.UUID | None = None
        self._image: uuid.UUID | None = None

    def add_audio(self, blob_id: uuid.UUID) -> "RenderTaskBuilder":
        if self._audio is not None:
            raise DuplicateAssetError(AssetKind.AUDIO)
        self._audio = blob_id
        return self

    def add_image(self, blob_id: uuid.UUID) -> "RenderTaskBuilder":
        if self._image is not None:
            raise DuplicateAssetError(AssetKind.IMAGE)
        self._image = blob_id
        return self

    def add(self, kind: AssetKind, blob_id: uuid.UUID) -> "RenderTaskBuilder":
        if kind is AssetKind.AUDIO:
            return self.add_audio(blob_id)
        return self.add_image(blob_id)

    def build(self) -> RenderTask:
        missing = [name for name, part in (("audio", self._audio), ("image", self._image)) if part is None]
        if missing:
            raise IncompleteTaskError(missing)
        return RenderTask(target=self._target, audio=self._audio, image=self._image)


class RenderProgress(BaseModel):
    """Progress of a render as seen by the download side."""

    progress: Literal["pending", "ready", "gone"]
    video_key: str | None = Field(default=None)

    model_config = ConfigDict(frozen=True)
