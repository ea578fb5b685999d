"""Pytest configuration and fixtures.

Everything here is offline: the SUT and the mirror node are replaced by
``httpx.MockTransport`` handlers, the consensus network by an in-memory
backend (see ``tests/fakes.py``).
"""

from __future__ import annotations

from typing import Generator

import httpx
import pytest

from tck.core.config import Settings, get_settings
from tck.services.consensus import ConsensusInfoClient
from tck.services.control_plane import ControlPlaneClient
from tck.services.mirror_node import MirrorNodeClient
from tck.services.session import SessionManager
from tests.fakes import (
    ED25519_PRIVATE_DER,
    MIRROR_URL,
    SUT_URL,
    FakeConsensusBackend,
    FakeMirror,
    FakeSut,
)


@pytest.fixture(autouse=True)
def _clear_settings_cache() -> Generator[None, None, None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings() -> Settings:
    """Local-network settings that ignore the developer's .env."""
    return Settings(
        _env_file=None,
        network="local",
        json_rpc_server_url=SUT_URL,
        mirror_node_rest_url=MIRROR_URL,
        OPERATOR_ACCOUNT_ID="0.0.2",
        OPERATOR_ACCOUNT_PRIVATE_KEY=ED25519_PRIVATE_DER,
    )


# =============================================================================
# Control plane
# =============================================================================


@pytest.fixture
def fake_sut() -> FakeSut:
    return FakeSut()


@pytest.fixture
def control_plane(fake_sut: FakeSut) -> Generator[ControlPlaneClient, None, None]:
    client = ControlPlaneClient(SUT_URL, transport=httpx.MockTransport(fake_sut))
    yield client
    client.close()


@pytest.fixture
def session_manager(control_plane: ControlPlaneClient, settings: Settings) -> SessionManager:
    return SessionManager(control_plane, settings)


# =============================================================================
# Oracles
# =============================================================================


@pytest.fixture
def consensus_backend() -> FakeConsensusBackend:
    return FakeConsensusBackend()


@pytest.fixture
def consensus_client(consensus_backend: FakeConsensusBackend) -> ConsensusInfoClient:
    return ConsensusInfoClient(consensus_backend)


@pytest.fixture
def fake_mirror() -> FakeMirror:
    return FakeMirror()


@pytest.fixture
def mirror_client(fake_mirror: FakeMirror) -> Generator[MirrorNodeClient, None, None]:
    client = MirrorNodeClient(MIRROR_URL, transport=httpx.MockTransport(fake_mirror))
    yield client
    client.close()
