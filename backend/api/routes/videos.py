"""
Video submission and read routes.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from api.dependencies import Container, get_container
from api.models.requests import ResetVideoRequest, SubmitVideoRequest
from api.models.responses import (
    ClipListResponse,
    ClipModel,
    Pagination,
    ProcessingJobModel,
    SubmitVideoResponse,
    VideoDetailResponse,
    VideoListResponse,
    VideoModel,
)

router = APIRouter()


@router.post("", response_model=SubmitVideoResponse, status_code=202)
async def submit_video(request: SubmitVideoRequest, container: Container = Depends(get_container)):
    """
    Register a video and queue its first processing job.
    The background poller picks the job up; the response returns immediately.
    """
    submission = await container.submitter.submit(
        request.origin_url, request.instructions, request.multiple_clips
    )
    return SubmitVideoResponse(
        video=VideoModel.from_domain(submission.video),
        processing_job=ProcessingJobModel.from_domain(submission.job),
    )


@router.get("", response_model=VideoListResponse)
async def list_videos(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20),
    status: Optional[str] = Query(default=None),
    container: Container = Depends(get_container),
):
    result = await container.queries.list_videos(page, limit, status)
    return VideoListResponse(
        data=[VideoModel.from_domain(v) for v in result.items],
        pagination=Pagination(
            page=result.page,
            limit=result.limit,
            total=result.total,
            total_pages=result.total_pages,
        ),
    )


@router.get("/{video_id}", response_model=VideoDetailResponse)
async def get_video(video_id: str, container: Container = Depends(get_container)):
    detail = await container.queries.get_video(video_id)
    return VideoDetailResponse(
        **VideoModel.from_domain(detail.video).model_dump(),
        clips=[ClipModel.from_domain(c) for c in detail.clips],
        processing_jobs=[ProcessingJobModel.from_domain(j) for j in detail.jobs],
    )


@router.get("/{video_id}/clips", response_model=ClipListResponse)
async def get_clips(video_id: str, container: Container = Depends(get_container)):
    clips = await container.queries.get_clips(video_id)
    return ClipListResponse(data=[ClipModel.from_domain(c) for c in clips])


@router.post("/{video_id}/reset", response_model=SubmitVideoResponse, status_code=202)
async def reset_video(
    video_id: str,
    request: Optional[ResetVideoRequest] = None,
    container: Container = Depends(get_container),
):
    """Return a failed or completed video to pending and queue a new job."""
    submission = await container.submitter.reset(video_id, request.instructions if request else None)
    return SubmitVideoResponse(
        video=VideoModel.from_domain(submission.video),
        processing_job=ProcessingJobModel.from_domain(submission.job),
    )
