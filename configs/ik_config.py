"""
ik_config.py - Constants for IK solving, animation and trajectory recording.

All thresholds and magic numbers used by ik_tools live here.
Distances are in scene units (meters for the bundled robots),
angles in radians, times in milliseconds.
"""

# =============================================================================
# Solver Settings
# =============================================================================

# Caller-visible defaults, restored after every solve
DEFAULT_MAX_ITERATIONS = 10
DEFAULT_TOLERANCE = 0.01
DEFAULT_DAMPING_FACTOR = 0.5

# Used by structure analysis when the chain has no movable joints
FALLBACK_MAX_ITERATIONS = 25
FALLBACK_TOLERANCE = 0.01
FALLBACK_DAMPING_FACTOR = 0.8

# Structure analysis bounds
TUNED_MIN_ITERATIONS = 10
TUNED_MAX_ITERATIONS = 30
TUNED_MIN_TOLERANCE = 0.001
TUNED_MAX_TOLERANCE = 0.02
TUNED_MIN_DAMPING = 0.2
TUNED_MAX_DAMPING = 0.8
COMPLEXITY_DOF = 7  # dof at which a chain counts as fully complex

# =============================================================================
# CCD Iteration
# =============================================================================

COS_CLAMP = 0.999            # acos input bound
DEGENERATE_EPSILON = 0.001   # min joint->point vector length
MAX_STEP = 0.2               # per-iteration joint change (rad or units)
LARGE_ERROR_DISTANCE = 0.1   # above this, damping is boosted
LARGE_ERROR_DAMPING_BOOST = 1.5
STUCK_ITERATION = 10         # after this iteration, stuck detection kicks in
STUCK_DAMPING_GROWTH = 1.1

# =============================================================================
# Chain Conventions
# =============================================================================

END_EFFECTOR_NAMES = ('tcp', 'tool0', 'tool_center_point', 'ee_link', 'end_effector')
BASE_LINK_NAMES = ('base_link', 'world', 'base', 'fixed_base')

# =============================================================================
# Animation
# =============================================================================

DEFAULT_ANIMATION_DURATION_MS = 1000.0
MIN_ANIMATION_DURATION_MS = 800.0
DEFAULT_JOINT_VELOCITY = 1.0      # rad/s (or units/s) when a joint declares none
ANGLE_CHANGE_EPSILON = 1e-6
DEFAULT_FRAME_INTERVAL_MS = 1000.0 / 60.0

# =============================================================================
# Recording
# =============================================================================

# 10 min at 50Hz
MAX_RECORDED_KEYFRAMES = 30000
