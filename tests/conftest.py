"""Shared test fixtures for the SFM level codec."""

from typing import Optional

import pytest
import structlog

from sfm_manager import (
    Event,
    Level,
    LevelHead,
    Map,
    MapHead,
    Object,
    Param,
    Rotation,
    create_generic_level,
)
from sfm_tools.logging import close_log_file


def build_chain(depth: int) -> Object:
    """Object with `depth` nested objects below it, each with distinct fields."""
    head = Object(type_id=1, x=10, y=20, params=[Param("level", "0")])
    node = head
    for i in range(1, depth + 1):
        node.nested = Object(
            type_id=1 + i,
            x=10 * (i + 1),
            y=20 * (i + 1),
            slot=i % 3 if i % 2 else None,
            params=[Param("level", str(i))],
        )
        node = node.nested
    return head


def chain_depth(obj: Optional[Object]) -> int:
    depth = -1
    while obj is not None:
        depth += 1
        obj = obj.nested
    return depth


@pytest.fixture(autouse=True)
def reset_structlog():
    yield
    close_log_file()
    structlog.reset_defaults()


@pytest.fixture
def generic_level() -> Level:
    return create_generic_level("Test")


@pytest.fixture
def sample_level() -> Level:
    """Two submaps exercising every field of the model."""
    branching = Event(
        id=1,
        params=[Param("a", "1"), Param("a", "1"), Param("b", "")],
        children=[
            Event(id=2),
            Event(id=3, params=[Param("inner", "x")], children=[Event(id=4), Event(id=5)]),
            Event(id=6, children=[Event(id=7, children=[Event(id=8, params=[Param("deep", "yes")])])]),
        ],
    )

    first = Map(
        head=MapHead(
            name="Cave & <Tunnels>",
            version=103,
            tileset=20,
            tileset2=21,
            bg=1,
            spikes=4,
            spikes2=40,
            width=1600,
            height=608,
            colors="00FF00AA",
            scroll_mode=2,
            music=60,
        ),
        objects=[
            Object(type_id=12, x=64, y=128, slot=1, rotation=Rotation.ROTATE_90,
                   events=[branching], params=[Param("color", "red \"dark\"")],
                   nested=Object(type_id=13, x=0, y=0, rotation=Rotation.ROTATE_270)),
            Object(type_id=0, x=4294967295, y=0, slot=65535),
            Object(type_id=65535, x=1, y=2, events=[Event(id=0)]),
        ],
    )
    second = Map(head=MapHead(name="", colors=""))

    return Level(
        head=LevelHead(
            name="Sample",
            version=103,
            screenshot_submap=1,
            last_submap=1,
            submap_order=[1, 0, 1],
        ),
        maps=[first, second],
    )
