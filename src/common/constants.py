"""
Physical and Engine Constants for RadioCity

This module contains the physical constants and the fixed tuning values
used throughout the propagation, probing and drive-test calculations.
"""

# Physical constants
SPEED_OF_LIGHT = 299792458.0  # Speed of light in vacuum (m/s)

# Conversion factors
MHZ_TO_HZ = 1e6  # MHz to Hz conversion
METERS_PER_KM = 1000.0

# Free-space path loss: 32.4 + 20log10(f_MHz) + 20log10(d_km)
FSPL_CONSTANT_DB = 32.4
MIN_PATH_DISTANCE_M = 1.0  # Distances floored at 1 m (no singularity at source)

# Numerical stability parameters
EPSILON = 1e-6  # Denominator clamp for degenerate geometry

# Transmitter defaults
DEFAULT_POWER_DBM = 36.0
DEFAULT_FREQUENCY_MHZ = 2400.0
TX_COLORS = ["#38bdf8", "#f472b6", "#f59e0b", "#34d399", "#a78bfa"]

# Ray propagation
MAX_BOUNCES = 2
MIN_POWER_DBM = -110.0  # Power floor, ray marching halts here
MAX_RAY_RANGE_M = 5000.0
RAY_ORIGIN_OFFSET_M = 0.5  # Launch offset from transmitter
BOUNCE_OFFSET_M = 0.25  # Re-launch offset from a hit point
BASE_RAYS_PER_TX = 260
MIN_RAYS_PER_TX = 120
RAYS_DECREMENT_PER_TX = 60
SEGMENT_MIN_ALPHA = 0.15

# Point probe
OBSTRUCTION_PENALTY_DB = 25.0  # Generic NLOS penalty
LOS_CLEARANCE_M = 0.25  # LOS query stops this short of the transmitter
STRONG_SIGNAL_DBM = -80.0  # Interference count threshold
HANDOVER_MARGIN_DB = 3.0
SOFTMAX_TEMPERATURE = 4.0

# Quality tier thresholds on best received power (strictly greater than)
QUALITY_THRESHOLDS_DBM = {
    'excellent': -70.0,
    'good': -85.0,
    'fair': -100.0,
    'poor': MIN_POWER_DBM,
}

# Interference field (visual tuning, not physical accuracy)
MAX_FIELD_TRANSMITTERS = 8
FIELD_SPATIAL_SCALE = 0.03  # Stretches fringes ~30x
FIELD_PHASE_TIME_SCALE = 1e-9  # Slows GHz oscillation to a few Hz
FIELD_INTENSITY_SCALE = 6.0
FIELD_DISTANCE_BIAS_M = 1e-3
FIELD_PLANE_OFFSET_M = 4.0  # Reference plane height above ground

# Drive test
DRIVE_TEST_STEP_M = 6.0
DRIVE_TEST_COLORS = {
    'dead': "#ef4444",    # <= -100 dBm
    'weak': "#f97316",    # <= -90 dBm
    'fair': "#f59e0b",    # <= -80 dBm
    'strong': "#22c55e",  # > -80 dBm
}
DRIVE_PROBE_HZ = 10.0
PROBE_VEHICLE_SPEED_MPS = 35.0
PROBE_VEHICLE_LIFT_M = 3.0

# Mobility
ORBIT_PHASE_STEP_RAD = 0.8  # Default phase offset per transmitter index
