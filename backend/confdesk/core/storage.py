# confdesk/core/storage.py
"""
Object store client (Cloudinary upload API over HTTP).

Uploads are signed with the account secret: the request parameters are
sorted, joined as `k=v&k=v`, suffixed with the secret and hashed with SHA-1.
"""
import time
import hashlib
import logging
from pathlib import Path

import httpx

from ..config import settings

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Upload/delete failed or the object store is not configured."""


def is_configured() -> bool:
    return bool(
        settings.cloudinary_cloud_name
        and settings.cloudinary_api_key
        and settings.cloudinary_api_secret
    )


def sign_params(params: dict, secret: str) -> str:
    to_sign = "&".join(f"{k}={params[k]}" for k in sorted(params) if params[k] not in (None, ""))
    return hashlib.sha1((to_sign + secret).encode("utf-8")).hexdigest()


def _endpoint(resource_type: str, action: str) -> str:
    return f"{settings.cloudinary_api_base}/{settings.cloudinary_cloud_name}/{resource_type}/{action}"


async def upload_file(content: bytes, filename: str, folder: str, resource_type: str = "raw") -> dict:
    """
    Upload a file and return {url, publicId, fileName}.

    PDFs go up as `raw` resources, payment screenshots as `image`.
    """
    if not is_configured():
        raise StorageError("Object store is not configured")
    if not content:
        raise StorageError("Empty file")

    stem = Path(filename or "file").stem.replace(" ", "_")
    params = {
        "folder": folder,
        "public_id": f"{stem}_{int(time.time() * 1000)}",
        "timestamp": int(time.time()),
    }
    data = {
        **params,
        "api_key": settings.cloudinary_api_key,
        "signature": sign_params(params, settings.cloudinary_api_secret),
    }

    try:
        async with httpx.AsyncClient(timeout=120) as client:
            resp = await client.post(
                _endpoint(resource_type, "upload"),
                data=data,
                files={"file": (filename, content)},
            )
            resp.raise_for_status()
            js = resp.json()
    except httpx.HTTPError as e:
        raise StorageError(f"Upload failed: {e}") from e

    return {"url": js["secure_url"], "publicId": js["public_id"], "fileName": filename}


async def delete_file(public_id: str, resource_type: str = "raw") -> None:
    if not is_configured():
        raise StorageError("Object store is not configured")

    params = {"public_id": public_id, "timestamp": int(time.time())}
    data = {
        **params,
        "api_key": settings.cloudinary_api_key,
        "signature": sign_params(params, settings.cloudinary_api_secret),
    }
    try:
        async with httpx.AsyncClient(timeout=30) as client:
            resp = await client.post(_endpoint(resource_type, "destroy"), data=data)
            resp.raise_for_status()
    except httpx.HTTPError as e:
        raise StorageError(f"Delete failed: {e}") from e


async def delete_quietly(public_id: str | None, resource_type: str = "raw") -> None:
    """Best-effort removal of a replaced object; failures are only logged."""
    if not public_id:
        return
    try:
        await delete_file(public_id, resource_type)
    except StorageError as e:
        logger.warning("[storage] could not delete %s: %s", public_id, e)
