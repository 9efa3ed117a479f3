# memorial/clients/media.py
"""
Cloudinary image hosting.

Requests are signed with Cloudinary's scheme: SHA-1 over the sorted
"key=value&..." parameter string followed by the API secret (not an HMAC).
"""
import asyncio
import hashlib
import logging
import time
from dataclasses import dataclass
from typing import Optional, Protocol

import aiohttp

from memorial.core.errors import DependencyFailure

logger = logging.getLogger(__name__)

CLOUDINARY_API = "https://api.cloudinary.com/v1_1"

_EXTENSIONS = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/gif": "gif",
    "image/webp": "webp",
}


@dataclass(frozen=True)
class UploadedImage:
    url: str
    public_id: str


class MediaHost(Protocol):
    async def upload(self, data: bytes, content_type: str) -> UploadedImage: ...

    async def delete(self, public_id: str) -> None: ...


def sign_params(params: dict, api_secret: str) -> str:
    to_sign = "&".join(f"{key}={params[key]}" for key in sorted(params))
    return hashlib.sha1(f"{to_sign}{api_secret}".encode("utf-8")).hexdigest()


class CloudinaryMediaHost:
    def __init__(
        self,
        cloud_name: Optional[str],
        api_key: Optional[str],
        api_secret: Optional[str],
        folder: str = "memorial-board",
        timeout_seconds: float = 10.0,
    ):
        self._cloud_name = cloud_name
        self._api_key = api_key
        self._api_secret = api_secret
        self._folder = folder
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)

    def _assert_configured(self) -> None:
        if not (self._cloud_name and self._api_key and self._api_secret):
            raise DependencyFailure(
                "media",
                "Set CLOUDINARY_CLOUD_NAME, CLOUDINARY_API_KEY and CLOUDINARY_API_SECRET",
            )

    def _signed(self, params: dict) -> dict:
        params = dict(params, timestamp=str(int(time.time())))
        params["signature"] = sign_params(params, self._api_secret)
        params["api_key"] = self._api_key
        return params

    async def _post(self, endpoint: str, form: aiohttp.FormData) -> dict:
        url = f"{CLOUDINARY_API}/{self._cloud_name}/image/{endpoint}"
        try:
            async with aiohttp.ClientSession(timeout=self._timeout) as http:
                async with http.post(url, data=form) as resp:
                    if resp.status != 200:
                        detail = await resp.text()
                        raise DependencyFailure("media", f"{endpoint} failed ({resp.status}): {detail}")
                    return await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise DependencyFailure("media", str(exc)) from exc
        except ValueError as exc:
            raise DependencyFailure("media", f"{endpoint} returned a non-JSON body") from exc

    async def upload(self, data: bytes, content_type: str) -> UploadedImage:
        self._assert_configured()

        form = aiohttp.FormData()
        for key, value in self._signed({"folder": self._folder}).items():
            form.add_field(key, value)
        extension = _EXTENSIONS.get(content_type, "img")
        form.add_field("file", data, filename=f"upload.{extension}", content_type=content_type)

        body = await self._post("upload", form)
        try:
            return UploadedImage(url=body["secure_url"], public_id=body["public_id"])
        except (KeyError, TypeError) as exc:
            raise DependencyFailure("media", "unexpected upload response") from exc

    async def delete(self, public_id: str) -> None:
        self._assert_configured()

        form = aiohttp.FormData()
        for key, value in self._signed({"public_id": public_id}).items():
            form.add_field(key, value)
        await self._post("destroy", form)
        logger.info("Deleted hosted image %s", public_id)
