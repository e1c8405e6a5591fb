"""Shared fixtures: a small hand-built shot tree."""

import pytest

from shotserver.models.collision import CollisionKind
from shotserver.models.geometry import Point, RaySegment
from shotserver.models.shot import BranchOrigin, RicochetInfo, ShotHit, ShotResult, ShotSegment


def build_shot(shot_id: str = "shot_1000_1", with_child: bool = True) -> ShotResult:
    """Line bouncing once off a wall, then a stopped branch shot."""
    wall = (Point(100, -50), Point(100, 50))
    segments = (
        ShotSegment("line", RaySegment(Point(0, 0), Point(100, 0), 0.0), 0,
                    tags=("spark",)),
        ShotSegment("line", RaySegment(Point(95, 0), Point(0, 0), 180.0), 1,
                    ricochet=RicochetInfo(True, 1)),
    )
    hits = (
        ShotHit(CollisionKind.BARRIER, Point(100, 0), 100.0, "wall", edge=wall,
                segment_type="line", segment_index=0, damage={"direct": 5.0}),
    )
    children = ()
    if with_child:
        children = (ShotResult(
            id=f"{shot_id}_c",
            timestamp=1000,
            shooter_ref="alice",
            source=Point(0, 0),
            direction=150.0,
            payload={"name": "line_branch_0", "trajectory": []},
            segments=(ShotSegment("line", RaySegment(Point(0, 0), Point(-43.3, 25), 150.0), 0),),
            hits=(ShotHit(CollisionKind.BODY, Point(-43.3, 25), 50.0, "bob",
                          meta={"team": "red"}, segment_type="line"),),
            total_distance=50.0,
            completed=True,
            branch=BranchOrigin(1, "line", 0, -30.0),
        ),)
    return ShotResult(
        id=shot_id,
        timestamp=1000,
        shooter_ref="alice",
        source=Point(0, 0),
        direction=0.0,
        payload={"name": "bouncer", "trajectory": [{"kind": "line", "length": 200}]},
        segments=segments,
        hits=hits,
        split_shots=children,
        total_distance=195.0,
        execution_time_ms=0.4,
        completed=True,
    )


@pytest.fixture
def shot() -> ShotResult:
    return build_shot()
