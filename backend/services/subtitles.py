"""
Clip subtitle use cases: read, replace, confirm and un-confirm.
"""
import logging
import uuid
from typing import Callable, List

from core.errors import ConflictError, NotFoundError, ValidationError
from core.gateways import ClipRepository, ClipSubtitleRepository
from models.clip_models import ClipSubtitle, SubtitleSegment
from models.result import Err

logger = logging.getLogger(__name__)

# Domain errors that describe a state conflict rather than bad input
CONFLICT_KINDS = {"ALREADY_CONFIRMED", "NOT_CONFIRMED"}


def raise_for(err: Err) -> None:
    if err.kind in CONFLICT_KINDS:
        raise ConflictError(err.message)
    raise ValidationError(f"{err.kind}: {err.message}")


class SubtitleService:
    def __init__(
        self,
        clip_repository: ClipRepository,
        subtitle_repository: ClipSubtitleRepository,
        generate_id: Callable[[], str] = lambda: str(uuid.uuid4()),
    ):
        self.clip_repository = clip_repository
        self.subtitle_repository = subtitle_repository
        self.generate_id = generate_id

    async def get(self, clip_id: str) -> ClipSubtitle:
        await self._require_clip(clip_id)
        subtitle = await self.subtitle_repository.find_by_clip_id(clip_id)
        if subtitle is None:
            raise NotFoundError("Subtitle for clip", clip_id)
        return subtitle

    async def update(self, clip_id: str, segments: List[SubtitleSegment]) -> ClipSubtitle:
        """Replace the segments, creating the subtitle on first write."""
        await self._require_clip(clip_id)
        existing = await self.subtitle_repository.find_by_clip_id(clip_id)

        if existing is None:
            result = ClipSubtitle.create(clip_id, segments, self.generate_id)
        else:
            result = existing.with_segments(segments)
        if not result.ok:
            raise_for(result)

        await self.subtitle_repository.save(result.value)
        logger.info(f"Saved {len(segments)} subtitle segments for clip {clip_id}")
        return result.value

    async def confirm(self, clip_id: str) -> ClipSubtitle:
        subtitle = await self.get(clip_id)
        result = subtitle.confirm()
        if not result.ok:
            raise_for(result)
        await self.subtitle_repository.save(result.value)
        logger.info(f"Confirmed subtitles for clip {clip_id}")
        return result.value

    async def unconfirm(self, clip_id: str) -> ClipSubtitle:
        subtitle = await self.get(clip_id)
        result = subtitle.unconfirm()
        if not result.ok:
            raise_for(result)
        await self.subtitle_repository.save(result.value)
        return result.value

    async def _require_clip(self, clip_id: str) -> None:
        if await self.clip_repository.find_by_id(clip_id) is None:
            raise NotFoundError("Clip", clip_id)
