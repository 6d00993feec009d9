# trefa/sync/storage.py
from typing import List, Optional
from urllib.parse import quote

import requests


class StorageError(RuntimeError):
    pass


class StorageBucket:
    """Supabase Storage bucket over its REST API (service key)."""

    def __init__(self, url: str, service_key: str, bucket: str,
                 session: Optional[requests.Session] = None, timeout: int = 30):
        self.base = f"{url.rstrip('/')}/storage/v1"
        self.bucket = bucket
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "apikey": service_key,
            "Authorization": "Bearer " + service_key,
        })

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        try:
            r = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise StorageError(f"storage request failed: {e}") from e
        if not r.ok:
            raise StorageError(f"storage {method} {url} -> {r.status_code}: {r.text[:200]}")
        return r

    def list(self, folder: str, limit: int = 1000) -> List[dict]:
        r = self._request(
            "POST",
            f"{self.base}/object/list/{self.bucket}",
            json={"prefix": folder, "limit": limit, "offset": 0},
        )
        data = r.json()
        return data if isinstance(data, list) else []

    def upload(self, path: str, content: bytes, content_type: str, upsert: bool = False) -> None:
        self._request(
            "POST",
            f"{self.base}/object/{self.bucket}/{quote(path)}",
            data=content,
            headers={"Content-Type": content_type, "x-upsert": "true" if upsert else "false"},
        )

    def public_url(self, path: str) -> str:
        return f"{self.base}/object/public/{self.bucket}/{quote(path)}"
