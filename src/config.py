"""
Configuration constants for the onboard corner tracker.
Tuned for flight hardware without a floating-point unit: every value here
is an integer and is only used as a constructor default.
"""

# =============================================================================
# Fixed-Point Resolution
# =============================================================================
SUBPIXEL_FACTOR = 10  # Fixed-point units per pixel (0.1 px resolution)

# =============================================================================
# Corner Detection (Harris / Noble)
# =============================================================================
MAX_POINTS = 25  # Candidate cap per detection call
SUPPRESSION_DISTANCE = 5  # Half-width of the square excluded around a corner
SMOOTH_KERNEL = ((1, 2, 1),
                 (2, 4, 2),
                 (1, 2, 1))
SMOOTH_PRE_DIVISOR = 14  # Applied to every sample before weighting (retains energy)
SMOOTH_POST_DIVISOR = 255  # Applied after weighting, keeps Harris in int32 range
HARRIS_RECIPROCAL_K = 25  # 1 / 0.04
HARRIS_TRACE_CLAMP = 255  # dx2 + dy2 is clamped before squaring
NOBLE_SMALL_LIMIT = 65  # Noble fallback: values up to this are amplified
NOBLE_SMALL_GAIN = 1000
NOBLE_SATURATION = 65335
THRESHOLD_RATIO = 5  # Scores below max / 5 are discarded
CORNER_SCORE = "harris"  # "harris" or "noble"

# =============================================================================
# Candidate Point Strategy
# =============================================================================
DETECTOR_STRATEGY = "harris"  # "harris" or "agents"

# Agent-based search (alternative to Harris maxima)
AGENT_GRID_ROWS = 5  # Agents are laid out on a rows x rows grid
AGENT_RESOLUTION = 100  # Agent positions are kept in 1/100 px
AGENT_BORDER = 10  # Initial grid margin in pixels
AGENT_MAX_JUMP = 10  # Step multiplier for move actions
AGENT_HALF_PATCH = 2  # 5x5 gradient patch as sensory input
AGENT_TIME_STEPS = 20
AGENT_ONLY_STOPPED = True  # Return only agents that decided to stop

# =============================================================================
# Optical Flow (single-level Lucas-Kanade)
# =============================================================================
HALF_WINDOW_SIZE = 5  # 11x11 tracking window
MAX_ITERATIONS = 10
STEP_THRESHOLD = 2  # L1 step in subpixel units (0.2 px at factor 10)
TENSOR_SCALE = 255  # G and b are divided by this to stay in range
RESIDUAL_PER_PIXEL = 25  # Divergence guard: error > (25 * 25) * patch_size^2

# =============================================================================
# Motion Field Aggregation
# =============================================================================
MOTION_GRID = (4, 3)  # Grid cells for point distribution (columns, rows)
MOTION_HISTORY_FRAMES = 10
MIN_TRACKED_POINTS = 3  # Below this an estimate is reported as unreliable
