from typing import Optional

import httpx
from pydantic import ValidationError

from tutorsched.core.exceptions import ConflictCheckUnavailable
from tutorsched.scheduling.schemas import ConflictCheckRequest, ConflictCheckResponse


class ConflictCheckClient:
    """POSTs a proposed slot to the conflict check endpoint. Any failure raises ConflictCheckUnavailable."""

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._url = url
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def check(self, request: ConflictCheckRequest) -> ConflictCheckResponse:
        payload = request.model_dump(by_alias=True, exclude_none=True, mode="json")
        try:
            response = await self._client.post(self._url, json=payload)
        except httpx.HTTPError as e:
            raise ConflictCheckUnavailable(f"Conflict check request failed: {e}") from e
        if response.is_error:
            raise ConflictCheckUnavailable(f"Conflict check returned {response.status_code}")
        try:
            return ConflictCheckResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise ConflictCheckUnavailable(f"Conflict check returned an unreadable body: {e}") from e
