from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from typing import Optional
import logging
from expense_tracker.api.expenses import public_base_url
from expense_tracker.core.config import settings
from expense_tracker.core.storage import (
    InvalidObjectKey,
    ObjectStorage,
    SignatureError,
    get_object_storage,
    new_object_key,
)
from expense_tracker.schemas.upload import SignUploadRequest, SignUploadResponse

router = APIRouter(prefix=settings.API_PREFIX, tags=["upload"])
logger = logging.getLogger(__name__)

@router.post("/upload/sign", response_model=SignUploadResponse)
async def sign_upload(
    payload: SignUploadRequest,
    request: Request,
    storage: ObjectStorage = Depends(get_object_storage)
):
    """
    Issue a short-lived URL the client PUTs the raw file to.
    The returned key is what the client later PATCHes onto the expense.
    """
    key = new_object_key(payload.filename)
    upload_url = storage.presign(
        "PUT", key, public_base_url(request), settings.UPLOAD_URL_TTL, content_type=payload.content_type
    )
    logger.info(f"Signed upload for {payload.filename!r} as {key}")
    return SignUploadResponse(upload_url=upload_url, key=key)

@router.put("/storage/{key:path}")
async def put_object(
    key: str,
    request: Request,
    expires: Optional[str] = Query(None),
    signature: Optional[str] = Query(None),
    storage: ObjectStorage = Depends(get_object_storage)
):
    content_type = request.headers.get("content-type", "")
    try:
        storage.verify("PUT", key, expires, signature, content_type=content_type)
    except SignatureError as e:
        logger.warning(f"Rejected upload to {key}: {e}")
        raise HTTPException(status_code=403, detail=str(e))

    try:
        storage.put(key, await request.body(), content_type)
    except InvalidObjectKey as e:
        logger.warning(f"Rejected upload to {key}: {e}")
        raise HTTPException(status_code=400, detail="Invalid object key")
    return Response(status_code=200)

@router.get("/storage/{key:path}")
async def get_object(
    key: str,
    expires: Optional[str] = Query(None),
    signature: Optional[str] = Query(None),
    storage: ObjectStorage = Depends(get_object_storage)
):
    try:
        storage.verify("GET", key, expires, signature)
    except SignatureError as e:
        logger.warning(f"Rejected download of {key}: {e}")
        raise HTTPException(status_code=403, detail=str(e))

    obj = storage.get(key)
    if obj is None:
        raise HTTPException(status_code=404, detail="Object not found")
    return Response(content=obj.data, media_type=obj.content_type)
