from __future__ import annotations

import itertools
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from typing import Any

import httpx
from loguru import logger

from app.core.config import settings
from app.domain import RawEvent
from app.errors import ConfigurationError, LedgerRpcError

from .felt import to_felt_hex


@dataclass(slots=True)
class EventsPage:
    events: list[RawEvent] = field(default_factory=list)
    continuation_token: str | None = None


def _as_hex_tuple(value: Any) -> tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(str(item) for item in value)


def _to_raw_event(item: dict[str, Any]) -> RawEvent:
    block_number = item.get("block_number")
    if isinstance(block_number, bool) or not isinstance(block_number, int):
        block_number = None
    return RawEvent(
        from_address=str(item.get("from_address") or ""),
        keys=_as_hex_tuple(item.get("keys")),
        data=_as_hex_tuple(item.get("data")),
        block_number=block_number,
        transaction_hash=item.get("transaction_hash"),
    )


class StarknetRpcClient:
    """Thin JSON-RPC wrapper around the Starknet node endpoints the indexer needs."""

    def __init__(
        self,
        *,
        endpoint: str | None = None,
        page_size: int | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        resolved_endpoint = endpoint or (str(settings.rpc_endpoint) if settings.rpc_endpoint else None)
        if not resolved_endpoint:
            raise ConfigurationError("RPC_ENDPOINT must be set")
        self.endpoint = resolved_endpoint
        self.page_size = page_size or settings.events_page_size
        self.timeout = timeout or settings.rpc_timeout_seconds
        self._ids = itertools.count(1)
        client_kwargs: dict[str, Any] = {"timeout": self.timeout}
        if transport is not None:
            client_kwargs["transport"] = transport
        self.client = httpx.Client(**client_kwargs)

    def _call(self, method: str, params: Any) -> Any:
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        logger.debug("Starknet RPC {} params={}", method, params)
        try:
            response = self.client.post(self.endpoint, json=payload)
        except httpx.HTTPError as exc:
            raise LedgerRpcError(f"{method} transport failure: {exc}", method=method) from exc

        if response.status_code != 200:
            raise LedgerRpcError(
                f"{method} returned HTTP {response.status_code}: {response.text[:200]}",
                method=method,
                code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise LedgerRpcError(f"{method} returned a non-JSON body", method=method) from exc

        if not isinstance(body, dict):
            raise LedgerRpcError(f"{method} returned an unexpected payload", method=method)

        error = body.get("error")
        if error:
            code = error.get("code") if isinstance(error, dict) else None
            message = error.get("message") if isinstance(error, dict) else error
            raise LedgerRpcError(f"{method} failed: {message}", method=method, code=code)

        if "result" not in body:
            raise LedgerRpcError(f"{method} response is missing a result", method=method)
        return body["result"]

    def block_number(self) -> int:
        result = self._call("starknet_blockNumber", [])
        if isinstance(result, bool) or not isinstance(result, int):
            raise LedgerRpcError(
                f"starknet_blockNumber returned {result!r}", method="starknet_blockNumber"
            )
        return result

    def get_events_page(
        self,
        address: str | int,
        keys: Sequence[int],
        from_block: int,
        to_block: int,
        continuation_token: str | None = None,
    ) -> EventsPage:
        event_filter: dict[str, Any] = {
            "from_block": {"block_number": from_block},
            "to_block": {"block_number": to_block},
            "address": to_felt_hex(address),
            "keys": [[to_felt_hex(key) for key in keys]],
            "chunk_size": self.page_size,
        }
        if continuation_token:
            event_filter["continuation_token"] = continuation_token

        result = self._call("starknet_getEvents", {"filter": event_filter})
        if not isinstance(result, dict) or not isinstance(result.get("events"), list):
            raise LedgerRpcError(
                "starknet_getEvents returned an unexpected payload", method="starknet_getEvents"
            )

        events: list[RawEvent] = []
        for item in result["events"]:
            if not isinstance(item, dict):
                logger.error("Dropping malformed event entry from starknet_getEvents: {!r}", item)
                continue
            events.append(_to_raw_event(item))
        return EventsPage(events=events, continuation_token=result.get("continuation_token") or None)

    def iter_events(
        self,
        address: str | int,
        keys: Sequence[int],
        from_block: int,
        to_block: int,
    ) -> Iterator[RawEvent]:
        """Yield every event in the range, following continuation tokens lazily."""

        token: str | None = None
        while True:
            page = self.get_events_page(address, keys, from_block, to_block, token)
            yield from page.events
            if not page.continuation_token:
                break
            token = page.continuation_token

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "StarknetRpcClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
