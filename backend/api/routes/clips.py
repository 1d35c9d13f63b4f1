"""
Clip media and subtitle routes.
"""
from fastapi import APIRouter, Depends

from api.dependencies import Container, get_container
from api.models.requests import UpdateSubtitlesRequest
from api.models.responses import MediaUrlResponse, SubtitleResponse
from models.clip_models import SubtitleSegment

router = APIRouter()


@router.get("/{clip_id}/video-url", response_model=MediaUrlResponse)
async def get_clip_video_url(clip_id: str, container: Container = Depends(get_container)):
    """Signed URL for the rendered clip, staged from Drive on a cache miss."""
    media = await container.media_cache.get_clip_url(clip_id)
    return MediaUrlResponse.from_domain(media)


@router.get("/{clip_id}/subtitles", response_model=SubtitleResponse)
async def get_subtitles(clip_id: str, container: Container = Depends(get_container)):
    return SubtitleResponse.from_domain(await container.subtitles.get(clip_id))


@router.put("/{clip_id}/subtitles", response_model=SubtitleResponse)
async def update_subtitles(
    clip_id: str,
    request: UpdateSubtitlesRequest,
    container: Container = Depends(get_container),
):
    segments = [
        SubtitleSegment(
            index=s.index,
            lines=list(s.lines),
            start_time_seconds=s.start_time_seconds,
            end_time_seconds=s.end_time_seconds,
        )
        for s in request.segments
    ]
    return SubtitleResponse.from_domain(await container.subtitles.update(clip_id, segments))


@router.post("/{clip_id}/subtitles/confirm", response_model=SubtitleResponse)
async def confirm_subtitles(clip_id: str, container: Container = Depends(get_container)):
    return SubtitleResponse.from_domain(await container.subtitles.confirm(clip_id))


@router.post("/{clip_id}/subtitles/unconfirm", response_model=SubtitleResponse)
async def unconfirm_subtitles(clip_id: str, container: Container = Depends(get_container)):
    return SubtitleResponse.from_domain(await container.subtitles.unconfirm(clip_id))
