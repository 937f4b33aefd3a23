"""
Object storage for image blobs.

Talks to the Supabase Storage REST API with httpx. Routes receive the client
through the ``get_storage`` dependency, so tests can swap in a fake.
"""
import logging
from typing import Optional
from urllib.parse import quote

import httpx

from app.core.config import settings
from app.core.errors import StorageError, StorageNotConfiguredError

logger = logging.getLogger(__name__)

SIGNED_URL_TTL_SECONDS = 60 * 60


class ObjectStorage:
    def __init__(
        self,
        base_url: str,
        service_key: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.service_key = service_key
        self.transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.base_url and self.service_key)

    def _client(self) -> httpx.AsyncClient:
        if not self.configured:
            raise StorageNotConfiguredError()
        return httpx.AsyncClient(
            base_url=f"{self.base_url}/storage/v1",
            transport=self.transport,
            timeout=30,
            headers={
                "Authorization": f"Bearer {self.service_key}",
                "apikey": self.service_key,
            },
        )

    @staticmethod
    def _path(bucket: str, key: str) -> str:
        return f"{quote(bucket)}/{quote(key)}"

    async def upload(self, bucket: str, key: str, data: bytes, content_type: str) -> None:
        async with self._client() as client:
            try:
                res = await client.post(
                    f"/object/{self._path(bucket, key)}",
                    content=data,
                    headers={
                        "Content-Type": content_type,
                        "cache-control": "max-age=3600",
                        "x-upsert": "false",
                    },
                )
                res.raise_for_status()
            except httpx.HTTPStatusError as e:
                raise StorageError(f"Failed to upload image: {e.response.text or e.response.status_code}")
            except httpx.HTTPError as e:
                raise StorageError(f"Failed to upload image: {e}")
        logger.info(f"Uploaded {len(data)} bytes to {bucket}/{key}")

    async def create_signed_url(
        self, bucket: str, key: str, expires_in: int = SIGNED_URL_TTL_SECONDS
    ) -> Optional[str]:
        """Return a time-limited download URL, or None if signing fails."""
        try:
            async with self._client() as client:
                res = await client.post(
                    f"/object/sign/{self._path(bucket, key)}",
                    json={"expiresIn": expires_in},
                )
                res.raise_for_status()
                signed = res.json().get("signedURL")
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Could not sign URL for {bucket}/{key}: {e}")
            return None
        if not signed:
            return None
        return f"{self.base_url}/storage/v1{signed}"

    async def remove(self, bucket: str, key: str) -> None:
        async with self._client() as client:
            try:
                res = await client.request(
                    "DELETE", f"/object/{quote(bucket)}", json={"prefixes": [key]}
                )
                res.raise_for_status()
            except httpx.HTTPError as e:
                raise StorageError(f"Failed to remove image: {e}")


storage = ObjectStorage(settings.STORAGE_URL, settings.STORAGE_SERVICE_KEY)


def get_storage() -> ObjectStorage:
    return storage
