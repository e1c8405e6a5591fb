"""Engine constants - geometry tolerances and defaults.

All floating-point tolerances live here so the geometry kernel and the
ray caster agree on them.
"""

# -- Geometry tolerances -------------------------------------------------

PARALLEL_EPSILON: float = 1e-10
"""Determinant magnitude below which two segments are treated as parallel."""

RECT_TOLERANCE: float = 0.5
"""Rectangle containment tolerance in pixels (edges are widened by this)."""

RICOCHET_OFFSET: float = 5.0
"""Distance a ricochet restart point is pushed along the reflected direction."""

MIN_RECOLLISION_DISTANCE: float = 5.0
"""Hits on the barrier just bounced off are ignored closer than this."""

HIT_TIE_TOLERANCE: float = 1e-6
"""Collisions this close to the nearest one count as simultaneous hits."""

# -- Engine defaults -----------------------------------------------------

MAX_RAY_DISTANCE: float = 2000.0
"""Hard cap on the length of any single cast ray."""

PREVIEW_RAY_LENGTH: float = 500.0
"""Length of the collision-free aiming preview ray."""

FIRE_SEGMENT_LENGTH: float = 100.0
"""Default step size for line-until-collision segments."""

MAX_FIRE_SEGMENTS: int = 50
"""Global per-shot cap on cast rays."""

MAX_RICOCHETS: int = 3
"""Default bounce budget when a segment does not set its own."""

DEFAULT_MAX_ITERATIONS: int = 50
"""Iteration cap for line-until-collision segments without one."""

# -- Pacing --------------------------------------------------------------

FIRE_ANIMATION_DELAY_MS: float = 50.0
"""Delay between progressively rendered segments."""

RICOCHET_ANIMATION_DELAY_MS: float = 75.0
"""Delay before a ricochet segment is rendered."""
