"""Object storage facet: bucket uploads and public URLs."""
import logging
from typing import IO, Union

import httpx

from ostazy.database.http import RequestHelper, decode_body
from ostazy.database.schemas import AuthResponse

logger = logging.getLogger(__name__)


class BucketClient:
    def __init__(self, helper: RequestHelper, bucket: str):
        self.helper = helper
        self.bucket = bucket

    def public_url(self, path: str) -> str:
        return self.helper.url(f"/storage/v1/object/public/{self.bucket}/{path}")

    def get_public_url(self, path: str) -> AuthResponse:
        """Local URL construction, no request is made."""
        return AuthResponse(data={"publicUrl": self.public_url(path)}, error=None)

    async def upload(self, path: str, file: Union[bytes, IO[bytes]]) -> AuthResponse:
        content = file if isinstance(file, (bytes, bytearray)) else file.read()
        headers = self.helper.headers(json_body=False)
        try:
            response = await self.helper.request(
                "POST", f"/storage/v1/object/{self.bucket}/{path}", headers, content=bytes(content)
            )
            data = decode_body(response)
            if not response.is_success:
                logger.error(f"Upload error for {self.bucket}/{path}: {data}")
                return AuthResponse(data=None, error=data)
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Upload error for {self.bucket}/{path}: {e}")
            return AuthResponse(data=None, error=e)

        logger.info(f"File uploaded to {self.bucket}/{path}")
        key = data.get("Key") if isinstance(data, dict) else None
        return AuthResponse(data={"path": key or path, "fullPath": self.public_url(path)}, error=None)


class StorageClient:
    def __init__(self, helper: RequestHelper):
        self.helper = helper

    def from_(self, bucket: str) -> BucketClient:
        return BucketClient(self.helper, bucket)
