"""Correlation of in-flight API calls with their responses."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .codec import DecodeFailed, decode_json_payload
from .errors import SignerRequestError

logger = logging.getLogger(__name__)


@dataclass
class PendingRequest:
    """An API call awaiting its response."""

    id: str
    payload: Dict[str, Any]
    future: asyncio.Future

    @property
    def method(self) -> Optional[str]:
        return self.payload.get("method")


class RequestRegistry:
    """Track outstanding calls by correlation id.

    Each response settles at most one pending request, and only the one whose
    id matches exactly. Responses for unknown ids (duplicates, late answers
    after a purge) are ignored.
    """

    def __init__(self) -> None:
        self._pending: Dict[str, PendingRequest] = {}

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, request_id: object) -> bool:
        return request_id in self._pending

    def pending_ids(self) -> List[str]:
        return list(self._pending)

    def register(self, request_id: str, payload: Dict[str, Any]) -> PendingRequest:
        if request_id in self._pending:
            raise ValueError(f"Request id already outstanding: {request_id}")
        future = asyncio.get_running_loop().create_future()
        pending = PendingRequest(id=request_id, payload=payload, future=future)
        self._pending[request_id] = pending
        return pending

    def discard(self, request_id: str) -> Optional[PendingRequest]:
        return self._pending.pop(request_id, None)

    def handle_response(self, raw: Any) -> bool:
        """Settle the request matching ``raw``; return whether one was settled."""

        decoded = decode_json_payload(raw)
        if isinstance(decoded, DecodeFailed):
            logger.error("Error parsing json for response: %s (%s)", decoded.raw, decoded.reason)
            return False

        response = decoded.value
        if not isinstance(response, dict):
            logger.warning("Dropping api response that is not an object: %r", response)
            return False

        pending = self._pending.pop(str(response.get("id")), None)
        if pending is None:
            logger.debug("No pending request for response id %s", response.get("id"))
            return False

        if pending.future.done():
            return False

        error = response.get("error")
        if error is not None:
            pending.future.set_exception(SignerRequestError(error))
        else:
            pending.future.set_result(response.get("result"))
        return True

    def fail_all(self, exc: BaseException) -> int:
        """Reject every outstanding request with ``exc`` and empty the registry."""

        pending, self._pending = self._pending, {}
        failed = 0
        for request in pending.values():
            if not request.future.done():
                request.future.set_exception(exc)
                failed += 1
        if failed:
            logger.info("Failed %d pending request(s): %s", failed, exc)
        return failed
