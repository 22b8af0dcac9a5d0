"""Result retrieval and digest decoding."""

from .decoding import (
    DecodedDigest,
    decode_consumer_digest,
    decode_producer_digest,
    producer_push_error,
    result_preview,
)
from .fetcher import ResultFetcher, extract_result_document
from .transport import InMemoryTransport, ResultTransport, UrllibTransport

__all__ = [
    "DecodedDigest",
    "decode_consumer_digest",
    "decode_producer_digest",
    "producer_push_error",
    "result_preview",
    "ResultFetcher",
    "extract_result_document",
    "InMemoryTransport",
    "ResultTransport",
    "UrllibTransport",
]
