"""HTTP client for the campus site records API."""

from dataclasses import dataclass

import httpx

from campus_site.services.uploads import ImageUpload


class ApiError(Exception):
    """Raised when a request fails or the API reports ``success: false``."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass
class RecordsApiClient:
    """Records API client implemented with httpx."""

    base_url: str
    http_client: httpx.AsyncClient

    @classmethod
    def create(cls, base_url: str) -> "RecordsApiClient":
        """Create an API client with a managed httpx session."""
        return cls(base_url=base_url.rstrip("/"), http_client=httpx.AsyncClient())

    async def list_records(self, collection: str) -> list[dict[str, object]]:
        """Fetch the snapshot of a collection."""
        body = await self._request("GET", f"/api/{collection}")
        data = body.get("data")
        if not isinstance(data, list):
            raise ApiError(f"Malformed {collection} list response")
        return data

    async def create_record(
        self,
        collection: str,
        fields: dict[str, object],
        image: ImageUpload | None = None,
        client_token: str | None = None,
    ) -> dict[str, object]:
        """Create a record; sends multipart when an image is attached."""
        path = f"/api/{collection}"
        if image is None:
            payload = dict(fields)
            if client_token is not None:
                payload["clientToken"] = client_token
            body = await self._request("POST", path, json=payload)
        else:
            form = {name: str(value) for name, value in fields.items()}
            if client_token is not None:
                form["clientToken"] = client_token
            files = {"image": (image.filename, image.content, image.content_type)}
            body = await self._request("POST", path, data=form, files=files)
        data = body.get("data")
        if not isinstance(data, dict):
            raise ApiError(f"Malformed {collection} create response")
        return data

    async def close(self) -> None:
        """Close the underlying HTTP client session."""
        await self.http_client.aclose()

    async def _request(
        self, method: str, path: str, **kwargs: object
    ) -> dict[str, object]:
        try:
            response = await self.http_client.request(
                method, f"{self.base_url}{path}", timeout=10, **kwargs
            )
        except httpx.HTTPError as exc:
            raise ApiError(f"{method} {path} failed: {exc}") from exc
        try:
            body = response.json()
        except ValueError as exc:
            raise ApiError(
                f"{method} {path} returned invalid JSON", response.status_code
            ) from exc
        if response.is_error or not isinstance(body, dict) or not body.get("success"):
            message = body.get("message") if isinstance(body, dict) else None
            raise ApiError(
                str(message or f"{method} {path} failed"), response.status_code
            )
        return body
