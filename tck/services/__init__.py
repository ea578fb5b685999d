"""Harness services: control plane, sessions, oracles, retry and verification."""

from .consensus import ConsensusBackend, ConsensusInfoClient, SdkConsensusBackend
from .control_plane import ControlPlaneClient, generate_key
from .mirror_node import MirrorNodeClient
from .resilience import (
    DEFAULT_POLICY,
    AttemptRecord,
    RetryPolicy,
    eventually,
    retry_until_consistent,
)
from .session import Session, SessionManager
from .verification import CrossOracleVerifier


__all__ = [
    "AttemptRecord",
    "ConsensusBackend",
    "ConsensusInfoClient",
    "ControlPlaneClient",
    "CrossOracleVerifier",
    "DEFAULT_POLICY",
    "MirrorNodeClient",
    "RetryPolicy",
    "SdkConsensusBackend",
    "Session",
    "SessionManager",
    "eventually",
    "generate_key",
    "retry_until_consistent",
]
