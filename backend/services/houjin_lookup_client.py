import logging
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict

from services.import_errors import LookupFailed
from services.import_settings import ImportSettings

logger = logging.getLogger(__name__)


class EnrichmentResult(BaseModel):
    """
    Response of the zenkoku houjin lookup service, copied field by field.
    Values are not validated; incorporated_at in particular can be any string.
    """

    model_config = ConfigDict(extra="ignore")

    identifier: str
    url: Any = ""
    houjin_bangou: Any = ""
    prefecture: Any = None
    address: Any = None
    incorporated_at: Any = ""
    listing_status: Any = None
    capital: Any = None
    revenue: Any = None
    employee_number: Any = None
    industry: Any = ""
    tel: Any = ""

    @classmethod
    def from_payload(cls, identifier: str, payload: dict[str, Any]) -> "EnrichmentResult":
        fields = {k: v for k, v in payload.items() if k in cls.model_fields and k != "identifier"}
        return cls(identifier=identifier, **fields)

    @property
    def match_key(self) -> str:
        # the service may omit the canonical number; fall back to what we asked for
        return self.houjin_bangou or self.identifier


class HoujinLookupClient:
    def __init__(self, settings: ImportSettings, transport: httpx.AsyncBaseTransport | None = None):
        self.settings = settings
        kwargs: dict[str, Any] = {}
        if settings.lookup_timeout is not None:
            kwargs["timeout"] = settings.lookup_timeout
        if transport is not None:
            kwargs["transport"] = transport
        self._client = httpx.AsyncClient(**kwargs)

    async def __aenter__(self) -> "HoujinLookupClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def enrich(self, identifier: str) -> EnrichmentResult:
        try:
            response = await self._client.post(
                self.settings.lookup_url,
                json={
                    "houjin_bangou": identifier,
                    "secret_key": self.settings.secret_key,
                },
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as exc:
            raise LookupFailed(identifier, f"HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise LookupFailed(identifier, f"{type(exc).__name__}: {exc}") from exc
        except ValueError as exc:
            raise LookupFailed(identifier, f"undecodable response body: {exc}") from exc

        if not isinstance(payload, dict):
            raise LookupFailed(identifier, "response body is not a JSON object")

        logger.debug("Lookup result for %s: %s", identifier, payload)
        return EnrichmentResult.from_payload(identifier, payload)
