"""Optional oracles consulted by the engine, and the factory that builds them."""

from .base import (
    EmbeddingOracle,
    LabelOracle,
    OracleGate,
    OracleSet,
    TopicOracle,
    VerifierOracle,
    get_oracles,
)

__all__ = [
    "EmbeddingOracle",
    "LabelOracle",
    "OracleGate",
    "OracleSet",
    "TopicOracle",
    "VerifierOracle",
    "get_oracles",
]
