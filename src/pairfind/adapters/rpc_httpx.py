from __future__ import annotations
import asyncio, logging, httpx
from typing import Any

from ..domain.decoding import ALL_PAIRS_LENGTH_SELECTOR, PAIR_CREATED_T0, decode_pair_created, decode_uint256_result
from ..domain.errors import ConfigurationError, TransientSourceError
from ..domain.models import EventLog, PairCreatedEvent
from ..domain.value_types import Address, Topic0
from ..ports.source import EventSource

logger = logging.getLogger(__name__)

DEFAULT_RPC_URL = "https://eth.llamarpc.com"
UNIV2_FACTORY = Address("0x5C69bEe701ef814a2B6a3EDD4B1652CB9cc5aA6f")

def _to_hex_block(n: int) -> str: return hex(int(n))


class HttpxRPC:
    """Minimal async JSON-RPC client; every failure surfaces as TransientSourceError."""

    def __init__(self, rpc_url: str, timeout_s: float = 20, max_conn: int = 8,
                 transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.rpc_url = rpc_url
        self.client = httpx.AsyncClient(
            http2=transport is None,
            timeout=httpx.Timeout(timeout_s),
            limits=httpx.Limits(max_connections=max_conn, max_keepalive_connections=max(1, max_conn//2)),
            transport=transport,
        )
        self._next_id = 0

    async def call(self, method: str, params: list[Any]) -> Any:
        self._next_id += 1
        payload = {"jsonrpc": "2.0", "id": self._next_id, "method": method, "params": params}
        # retry on 429 with simple backoff
        for attempt in range(3):
            try:
                r = await self.client.post(self.rpc_url, json=payload)
            except httpx.HTTPError as e:
                raise TransientSourceError(f"{method}: {type(e).__name__}: {e}", {"method": method}) from e
            if r.status_code == 429:
                ra = r.headers.get("Retry-After")
                delay = max(1.0, float(ra)) if ra and ra.isdigit() else (1.0 * (2**attempt))
                logger.debug("%s rate limited, sleeping %.1fs", method, delay)
                await asyncio.sleep(delay); continue
            try:
                r.raise_for_status()
                data = r.json()
            except (httpx.HTTPStatusError, ValueError) as e:
                raise TransientSourceError(f"{method}: {e}", {"method": method}) from e
            if "error" in data:
                err = data["error"]
                code = err.get("code") if isinstance(err, dict) else None
                msg = err.get("message") if isinstance(err, dict) else str(err)
                raise TransientSourceError(f"{method} RPC error code={code} message={msg}",
                                           {"method": method, "code": code})
            return data.get("result")
        raise TransientSourceError(f"Retries exhausted for {method}", {"method": method})

    async def aclose(self) -> None:
        await self.client.aclose()


def _log_from_json(rl: dict) -> EventLog:
    return EventLog(
        address=Address(rl["address"].lower()),
        topics=tuple(Topic0(t.lower()) for t in rl.get("topics", [])),
        data_hex=str(rl.get("data") or "0x"),
        block_number=int(rl["blockNumber"], 16),
        tx_hash=(rl.get("transactionHash") or "").lower(),
        log_index=int(rl.get("logIndex") or "0x0", 16),
    )


class FactoryEventSource(EventSource):
    """EventSource over a pair factory's PairCreated logs, served by a JSON-RPC node."""

    def __init__(self, rpc: HttpxRPC, factory: str = UNIV2_FACTORY) -> None:
        self.rpc = rpc
        self.factory = Address(factory.lower())

    async def _get_logs(self, lo: int, hi: int) -> list[dict]:
        res = await self.rpc.call("eth_getLogs", [{
            "address": self.factory,
            "fromBlock": _to_hex_block(lo),
            "toBlock": _to_hex_block(hi),
            "topics": [[PAIR_CREATED_T0]],
        }])
        return res or []

    async def total_count(self) -> int:
        res = await self.rpc.call("eth_call", [{"to": self.factory, "data": ALL_PAIRS_LENGTH_SELECTOR}, "latest"])
        try:
            return decode_uint256_result(res or "0x")
        except ValueError as e:
            raise ConfigurationError(f"allPairsLength() returned no data; is {self.factory} a pair factory?",
                                     {"factory": self.factory}) from e

    async def count_in_range(self, lo: int, hi: int) -> int:
        return len(await self._get_logs(lo, hi))

    async def events_at_block(self, block: int) -> list[PairCreatedEvent]:
        logs = sorted((_log_from_json(rl) for rl in await self._get_logs(block, block)),
                      key=lambda l: l.log_index)
        return [decode_pair_created(l) for l in logs]

    async def latest_block(self) -> int:
        return int(await self.rpc.call("eth_blockNumber", []), 16)
