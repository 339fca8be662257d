"""
Public API routes - no authentication required
"""

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse

from app.services.blob_store import BlobStore, LocalBlobStore, get_blob_store

router = APIRouter()

@router.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "ok"}

@router.get("/media/{path:path}")
async def get_media(
    path: str,
    expires: int,
    signature: str,
    blob_store: BlobStore = Depends(get_blob_store)
):
    """Serve a locally stored photo behind a signed, expiring URL"""
    if not isinstance(blob_store, LocalBlobStore):
        raise HTTPException(status_code=404, detail="Not found")

    file_path = blob_store.open_signed(path, expires, signature)
    if not file_path:
        raise HTTPException(status_code=403, detail="Invalid or expired link")

    return FileResponse(file_path, media_type="image/jpeg")
