from __future__ import annotations

from eth_utils import function_signature_to_4byte_selector, to_checksum_address

from .errors import SourceInconsistencyError
from .models import EventLog, PairCreatedEvent
from .value_types import Address, Topic0


# PairCreated(address indexed token0, address indexed token1, address pair, uint256)
PAIR_CREATED_T0 = Topic0("0x0d3648bd0f6ba80134a33ba9275ac585d9d315f0ad8355cddefde31afa28d0e9")
ALL_PAIRS_LENGTH_SELECTOR = "0x" + function_signature_to_4byte_selector("allPairsLength()").hex()

# --------- 32B word slicing (no eth_abi) --------------------------------------
def _word(b: bytes, i: int) -> bytes:
    return b[i*32:(i+1)*32]

def _u256(w: bytes) -> int:
    return int.from_bytes(w, "big")

def _addr_from_word(w: bytes) -> Address:
    return Address(to_checksum_address("0x" + w[-20:].hex()))

def _addr_from_topic(t: str) -> Address:
    h = t[2:] if t[:2].lower() == "0x" else t
    return Address(to_checksum_address("0x" + h[-40:]))

def hex_to_bytes(s: str) -> bytes:
    h = s[2:] if s[:2].lower() == "0x" else s
    if len(h) % 2: h = "0" + h
    return bytes.fromhex(h) if h else b""

def decode_uint256_result(result_hex: str) -> int:
    """Decode a single-word ``eth_call`` result; raises ValueError on empty return data."""
    data = hex_to_bytes(result_hex)
    if len(data) < 32:
        raise ValueError(f"expected a 32-byte word, got {len(data)} bytes")
    return _u256(_word(data, 0))

# ---------------------------- public API --------------------------------------

def decode_pair_created(log: EventLog) -> PairCreatedEvent:
    """Turn a raw PairCreated log into typed fields.

    topics[1], topics[2] carry token0/token1; data holds (pair, allPairs.length).
    """
    if not log.topics or log.topics[0].lower() != PAIR_CREATED_T0:
        raise SourceInconsistencyError(
            f"log at block {log.block_number} is not a PairCreated event",
            {"tx_hash": log.tx_hash, "log_index": log.log_index},
        )
    data = hex_to_bytes(log.data_hex)
    if len(log.topics) < 3 or len(data) < 64:
        raise SourceInconsistencyError(
            f"malformed PairCreated log at block {log.block_number}",
            {"tx_hash": log.tx_hash, "log_index": log.log_index},
        )
    return PairCreatedEvent(
        emission_order=_u256(_word(data, 1)),
        pair=_addr_from_word(_word(data, 0)),
        token0=_addr_from_topic(log.topics[1]),
        token1=_addr_from_topic(log.topics[2]),
        block_number=log.block_number,
        log_index=log.log_index,
    )
