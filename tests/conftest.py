"""Pytest configuration and fixtures."""

import random

import pytest

from semcanvas import EditorSession, Graph, Link, MemoryBackend, Node, SnapshotStore


@pytest.fixture
def rng() -> random.Random:
    """Seeded RNG so node jitter is reproducible."""
    return random.Random(1234)


@pytest.fixture
def scenario_graph() -> Graph:
    """Two latents and one observed: a -> b, a -> c."""
    return Graph(
        nodes=[
            Node(id="a", label="A", type="latent"),
            Node(id="b", label="B", type="latent"),
            Node(id="c", label="C", type="observed"),
        ],
        links=[
            Link(source="a", target="b", type="directed"),
            Link(source="a", target="c", type="directed"),
        ],
    )


@pytest.fixture
def store() -> SnapshotStore:
    return SnapshotStore(MemoryBackend())


@pytest.fixture
def session(store: SnapshotStore, rng: random.Random) -> EditorSession:
    """Empty session with an in-memory store."""
    return EditorSession(store=store, rng=rng)


@pytest.fixture
def scenario_session(scenario_graph: Graph, store: SnapshotStore, rng: random.Random) -> EditorSession:
    return EditorSession(graph=scenario_graph, store=store, rng=rng)
