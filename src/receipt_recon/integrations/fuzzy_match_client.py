"""
HTTP client for the external fuzzy-match service.

Request body::

    {"transactions": [{id, date, description, amount}],
     "receipts": [{id, date, vendor, amount}],
     "min_confidence": 0.7}

The response is either a JSON list of matches or an object with a
``matches`` list. Each match has ``transactionId``, ``receiptId``,
``confidence`` and ``reasoning`` (snake_case names are accepted too).
"""

from typing import Any, Optional
import json
import logging

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..matching.suggestions import FuzzyMatcher, ReceiptProjection, TransactionProjection
from ..models.ledger import MatchSuggestion
from ..utils.exceptions import SuggestionServiceError

logger = logging.getLogger(__name__)


class _SuggestionRecord(BaseModel):
    """One match as returned by the service."""

    model_config = ConfigDict(populate_by_name=True)

    transaction_id: str = Field(alias="transactionId")
    receipt_id: str = Field(alias="receiptId")
    confidence: float = Field(ge=0, le=1)
    reasoning: str = ""


class _SuggestionResponse(BaseModel):
    matches: list[_SuggestionRecord] = Field(default_factory=list)


class HttpFuzzyMatcher(FuzzyMatcher):
    """Fuzzy matcher backed by a JSON-over-HTTP service."""

    def __init__(
        self,
        endpoint: str,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        min_confidence: float = 0.7,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            endpoint: URL accepting the POSTed projections
            api_key: Bearer token, if the service requires one
            timeout: Request timeout in seconds; expiry is a service failure
            min_confidence: Suggestions below this confidence are discarded
            transport: Optional httpx transport (used by tests)
        """
        self.endpoint = endpoint
        self.api_key = api_key
        self.timeout = timeout
        self.min_confidence = min_confidence
        self._transport = transport

    @property
    def headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def suggest(
        self,
        transactions: list[TransactionProjection],
        receipts: list[ReceiptProjection],
    ) -> list[MatchSuggestion]:
        payload = {
            "transactions": [t.to_dict() for t in transactions],
            "receipts": [r.to_dict() for r in receipts],
            "min_confidence": self.min_confidence,
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.endpoint, json=payload, headers=self.headers)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            raise SuggestionServiceError(
                f"Fuzzy-match service returned HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise SuggestionServiceError(f"Fuzzy-match request failed: {e}") from e
        except json.JSONDecodeError as e:
            raise SuggestionServiceError("Fuzzy-match service returned invalid JSON") from e

        records = self._parse(data)
        suggestions = [
            MatchSuggestion(
                transaction_id=r.transaction_id,
                receipt_id=r.receipt_id,
                confidence=r.confidence,
                rationale=r.reasoning,
            )
            for r in records
            if r.confidence >= self.min_confidence
        ]
        logger.debug(
            f"Fuzzy-match service returned {len(records)} matches, "
            f"{len(suggestions)} above {self.min_confidence:.0%}"
        )
        return suggestions

    @staticmethod
    def _parse(data: Any) -> list[_SuggestionRecord]:
        if isinstance(data, list):
            data = {"matches": data}
        try:
            return _SuggestionResponse.model_validate(data).matches
        except ValidationError as e:
            raise SuggestionServiceError(f"Unexpected fuzzy-match response: {e}") from e
