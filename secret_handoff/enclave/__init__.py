"""Programs that run inside the trusted execution environment."""

from .args import ProducerArgs, encode_producer_args, parse_producer_args
from .consumer import run_consumer
from .producer import run_producer

__all__ = ["ProducerArgs", "encode_producer_args", "parse_producer_args", "run_consumer", "run_producer"]
