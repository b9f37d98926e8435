"""
Video streaming endpoints.

- GET /video?id=KEY streams an object from the bucket to the caller
- POST /upload streams the request body into the bucket

Neither endpoint buffers a whole video: downloads are forwarded chunk by
chunk from the object store's response, uploads are read from the ASGI
receive channel while the SDK sends them on.

Two behaviours are part of the public contract and intentionally kept:
a missing `id` on GET /video answers 200 with an error payload, and a
missing object answers 500 rather than 404.
"""

from typing import Annotated, AsyncIterator, Optional

from fastapi import APIRouter, Header, Query, Request, status
from fastapi.responses import JSONResponse, Response, StreamingResponse
from starlette.concurrency import iterate_in_threadpool
from starlette.requests import ClientDisconnect

from ...infrastructure.storage.client import ObjectNotFoundError, StorageError, StoredObject
from ...infrastructure.storage.streams import RequestBodyReader
from ..dependencies import ContextDep, RequestLoggerDep, StorageClientDep
from ..responses import status_response

router = APIRouter()

MISSING_ID_MESSAGE = "An 'id' term must be provided."


async def _iter_object(stored: StoredObject, chunk_size: int) -> AsyncIterator[bytes]:
    """Forward the object body chunk by chunk, closing it however streaming ends."""
    try:
        async for chunk in iterate_in_threadpool(stored.body.iter_chunks(chunk_size)):
            yield chunk
    finally:
        stored.body.close()


@router.get(
    "/video",
    summary="Stream a video",
    description="Streams the object stored under `id` with its content type and length.",
)
async def stream_video(
    context: ContextDep,
    storage: StorageClientDep,
    log: RequestLoggerDep,
    video_id: Annotated[Optional[str], Query(alias="id")] = None,
) -> Response:
    if video_id is None:
        log.info("An id term must be provided.")
        return JSONResponse({"error": MISSING_ID_MESSAGE})

    bucket = storage.bucket_name
    log.info(f"Retrieving video from bucket: {bucket}, key: {video_id}.")

    try:
        stored = await storage.fetch(video_id)
    except ObjectNotFoundError:
        log.info(f"{bucket}/{video_id} not found.")
        return status_response(status.HTTP_500_INTERNAL_SERVER_ERROR)
    except StorageError as e:
        log.error(
            f"Error while retrieving video {bucket}/{video_id} to stream.",
            extra={"error": str(e)},
            exc_info=True,
        )
        return status_response(status.HTTP_500_INTERNAL_SERVER_ERROR)

    log.info(f"Retrieved {bucket}/{stored.key} with size {stored.content_length}.")

    headers = {"Content-Length": str(stored.content_length)}
    if stored.content_type:
        headers["Content-Type"] = stored.content_type

    return StreamingResponse(
        _iter_object(stored, context.configuration.stream_chunk_size),
        headers=headers,
    )


@router.post(
    "/upload",
    summary="Upload a video",
    description="Streams the request body into the bucket under the key given in the `id` header.",
)
async def upload_video(
    request: Request,
    storage: StorageClientDep,
    log: RequestLoggerDep,
    video_id: Annotated[Optional[str], Header(alias="id")] = None,
    content_type: Annotated[Optional[str], Header(alias="content-type")] = None,
    content_length: Annotated[Optional[str], Header(alias="content-length")] = None,
) -> Response:
    bucket = storage.bucket_name
    log.info(
        f"Uploading video to bucket: {bucket}, key: {video_id}, "
        f"Content-Type: {content_type}, Content-Length: {content_length}."
    )

    if not video_id:
        log.error("Upload rejected: an 'id' header must be provided.")
        return status_response(status.HTTP_500_INTERNAL_SERVER_ERROR)

    body = RequestBodyReader(request.stream())
    try:
        await storage.store(video_id, content_type, content_length, body)
    except StorageError as e:
        log.error(
            f"Upload to object storage failed for video {video_id}.",
            extra={"error": str(e), "bytes_received": body.bytes_read},
            exc_info=True,
        )
        return status_response(status.HTTP_500_INTERNAL_SERVER_ERROR)
    except ClientDisconnect:
        log.error(
            f"Client disconnected while uploading video {video_id}.",
            extra={"bytes_received": body.bytes_read},
        )
        return status_response(status.HTTP_500_INTERNAL_SERVER_ERROR)

    log.info(f"Uploaded the video {video_id}.")
    return status_response(status.HTTP_200_OK)
