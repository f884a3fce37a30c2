"""
Shared fixtures: deterministic signer keys and a genesis environment.

Council (9 members, full threshold 6), Guardians (5 members, threshold 3)
and the foundation (3 members, threshold 2) use fixed integer keys so
that every run signs the same digests.
"""

import os
import sys

import pytest

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from zkgov.crypto import PrivateKey, system_address
from zkgov.governance import (
    Call,
    ProtocolEnvironment,
    ThresholdMultisig,
    UpgradeProposal,
)

COUNCIL_SIZE = 9
COUNCIL_THRESHOLD = 6
GUARDIANS_SIZE = 5
GUARDIANS_THRESHOLD = 3
FOUNDATION_SIZE = 3
FOUNDATION_THRESHOLD = 2

# Relayer submitting signature sets; not a member of anything
RELAYER = "0x00000000000000000000000000000000000000aa"


def _keys(base: int, count: int):
    return [PrivateKey.from_int(base + i) for i in range(count)]


def make_proposal(n: int = 0, executor=None) -> UpgradeProposal:
    """Distinct proposal per *n*: two calls into reserved contract slots."""
    return UpgradeProposal(
        calls=(
            Call(target=system_address(0x10), data=b"setImplementation" + bytes([n])),
            Call(target=system_address(0x11), value=n, data=b""),
        ),
        executor=executor,
        salt=n.to_bytes(32, "big"),
    )


def start_upgrade(env, proposal):
    """Deliver *proposal* through the bridge queue and start it."""
    env, result = env.enqueue_proposal(proposal.encode())
    assert result.ok, result
    env, result = env.start_upgrade()
    assert result.ok, result
    return env, result.value


@pytest.fixture(scope="module")
def council_keys():
    return _keys(1000, COUNCIL_SIZE)


@pytest.fixture(scope="module")
def guardian_keys():
    return _keys(2000, GUARDIANS_SIZE)


@pytest.fixture(scope="module")
def foundation_keys():
    return _keys(3000, FOUNDATION_SIZE)


@pytest.fixture(scope="module")
def outsider_keys():
    return _keys(9000, 9)


@pytest.fixture
def env(council_keys, guardian_keys, foundation_keys):
    """Genesis environment at t=0 with default config."""
    return ProtocolEnvironment.genesis(
        security_council=ThresholdMultisig.create([k.address for k in council_keys], COUNCIL_THRESHOLD),
        guardians=ThresholdMultisig.create([k.address for k in guardian_keys], GUARDIANS_THRESHOLD),
        foundation=ThresholdMultisig.create([k.address for k in foundation_keys], FOUNDATION_THRESHOLD),
    )
