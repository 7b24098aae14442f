"""Client for the remote PII/signature detection service."""

import json
import logging
import uuid
from typing import List, Optional

import httpx
from pydantic import ValidationError
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .base import BaseDetector
from ..exceptions import SchemaError, TransportError
from ..models.entities import SIGNATURE_LABEL, DetectionResult, Entity, EntityKind
from ..models.wire import ProcessDocumentResponse

logger = logging.getLogger(__name__)

# Only retry when the request never reached the service; a POST that was
# delivered is not replayed.
_RETRYABLE = (httpx.ConnectError, httpx.ConnectTimeout)

_retry_policy = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type(_RETRYABLE),
    reraise=True,
    before_sleep=before_sleep_log(logger, logging.WARNING),
)


def build_entities(payload: ProcessDocumentResponse) -> List[Entity]:
    """Assign identities to detected PII spans and signatures, PII first."""
    entities: List[Entity] = []
    for item in payload.pii_detection or []:
        entities.append(
            Entity(
                id=str(uuid.uuid4()),
                kind=EntityKind.PII,
                subtype=item.type,
                text=item.value,
                box=item.bbox.to_box(),
                confidence=item.confidence,
            )
        )
    for item in payload.signatures or []:
        entities.append(
            Entity(
                id=str(uuid.uuid4()),
                kind=EntityKind.SIGNATURE,
                subtype="SIGNATURE",
                text=SIGNATURE_LABEL,
                box=item.bbox.to_box(),
                confidence=item.confidence,
            )
        )
    return entities


class RemoteDetector(BaseDetector):
    """Detect PII and signatures via ``POST /process_document``."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 120.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/process_document"

    async def detect(
        self,
        filename: str,
        content: bytes,
        mime_type: Optional[str] = None,
        use_llm: bool = True,
    ) -> DetectionResult:
        logger.info("Sending %s (%d bytes, use_llm=%s) to %s", filename, len(content), use_llm, self.endpoint)
        try:
            response = await self._post(filename, content, mime_type, use_llm)
        except httpx.HTTPError as e:
            raise TransportError(f"Failed to process document: {str(e) or type(e).__name__}") from e

        if not response.is_success:
            raise TransportError(
                f"Failed to process document: {response.reason_phrase} - {response.text}"
            )

        result = self.parse_response(response.text)
        logger.info(
            "Detected %d PII entities and %d signatures in %s",
            len(result.pii_entities),
            len(result.signature_entities),
            filename,
        )
        return result

    @_retry_policy
    async def _post(
        self,
        filename: str,
        content: bytes,
        mime_type: Optional[str],
        use_llm: bool,
    ) -> httpx.Response:
        files = {"file": (filename, content, mime_type or "application/octet-stream")}
        data = {"use_llm": "true" if use_llm else "false"}
        return await self.client.post(self.endpoint, files=files, data=data)

    @staticmethod
    def parse_response(body: str) -> DetectionResult:
        """Validate a detection response body and build entities from it."""
        try:
            payload = ProcessDocumentResponse.model_validate_json(body)
        except ValidationError as e:
            raise SchemaError(f"Invalid detection response: {e}") from e

        return DetectionResult(
            entities=tuple(build_entities(payload)),
            ocr_text=payload.ocr_text(),
            raw_response=json.dumps(json.loads(body), indent=2),
        )

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
