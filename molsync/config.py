"""
Constants shared across the viewer core.

Colour tables, atomic radii, representation kinds and the camera/animation
numbers used when framing a structure.
"""

CARTOON = "cartoon"
BALL_AND_STICK = "ball_and_stick"
SPACEFILL = "spacefill"
STICK = "stick"
LINES = "lines"

REP_KINDS = (CARTOON, BALL_AND_STICK, SPACEFILL, STICK, LINES)

# kind shown when a structure is first loaded
DEFAULT_REP_KIND = CARTOON
# kind assigned to atoms when no single kind dominates
FALLBACK_REP_KIND = BALL_AND_STICK

ELEMENT_COLORS = {
    "H": 0xFFFFFF,
    "C": 0x909090,
    "N": 0x3050F8,
    "O": 0xFF0D0D,
    "F": 0x90E050,
    "NA": 0xAB5CF2,
    "MG": 0x8AFF00,
    "P": 0xFF8000,
    "S": 0xFFFF30,
    "CL": 0x1FF01F,
    "K": 0x8F40D4,
    "CA": 0x3DFF00,
    "MN": 0x9C7AC7,
    "FE": 0xE06633,
    "CO": 0xF090A0,
    "NI": 0x50D050,
    "CU": 0xC88033,
    "ZN": 0x7D80B0,
    "SE": 0xFFA100,
    "BR": 0xA62929,
    "I": 0x940094,
}
DEFAULT_COLOR = 0xFF1493

VDW_RADII = {
    "H": 1.1,
    "C": 1.7,
    "N": 1.55,
    "O": 1.52,
    "F": 1.47,
    "NA": 2.27,
    "MG": 1.73,
    "P": 1.8,
    "S": 1.8,
    "CL": 1.75,
    "K": 2.75,
    "CA": 2.31,
    "FE": 2.0,
    "ZN": 1.39,
    "SE": 1.9,
    "BR": 1.85,
    "I": 1.98,
}
DEFAULT_VDW_RADIUS = 1.7

# Uniform tints for every structure registered after the first
STRUCTURE_TINTS = [
    0x4FC3F7,
    0xFFB74D,
    0xAED581,
    0xBA68C8,
    0xF06292,
    0x4DB6AC,
    0xFFF176,
    0x9575CD,
]

# Line colours of interaction overlay layers, by interaction type
INTERACTION_COLORS = {
    "hbonds": 0x00E5FF,
    "salt_bridges": 0xFF4081,
}
DEFAULT_INTERACTION_COLOR = 0xFFEB3B

# Bond inference
BOND_CUTOFF = 2.0
# CA-CA distance above which the cartoon trace is broken
TRACE_BREAK_CUTOFF = 5.5

# Camera
CAMERA_FOV = 45.0
CAMERA_NEAR = 0.1
CAMERA_FAR = 500.0
CAMERA_START_DISTANCE = 50.0
FIT_MARGIN = 1.5
ZOOM_MARGIN = 1.8
MIN_ZOOM_SIZE = 2.0
MIN_DISTANCE = 1.0
RECENTER_THRESHOLD = 0.5

# Animation durations in seconds
ORIENT_DURATION = 0.4
ZOOM_DURATION = 0.4
CENTER_DURATION = 0.35
RECENTER_DURATION = 0.3
RESET_DURATION = 0.4

# Jacobi eigen-solver
JACOBI_SWEEPS = 50
JACOBI_EPSILON = 1e-15


def hex_to_rgb(hex_color):
    """Convert 0xRRGGBB or "#rrggbb" into an (r, g, b) tuple of floats in [0, 1]."""
    if isinstance(hex_color, str):
        hex_color = int(hex_color.lstrip("#"), 16)
    return (
        ((hex_color >> 16) & 0xFF) / 255.0,
        ((hex_color >> 8) & 0xFF) / 255.0,
        (hex_color & 0xFF) / 255.0,
    )


def rgb_to_hex_string(rgb):
    return "#" + "".join("%02x" % int(round(max(0.0, min(1.0, c)) * 255)) for c in rgb)


def element_color(element):
    return hex_to_rgb(ELEMENT_COLORS.get(element.upper(), DEFAULT_COLOR))


def interaction_color(kind):
    return hex_to_rgb(INTERACTION_COLORS.get(kind, DEFAULT_INTERACTION_COLOR))


def vdw_radius(element):
    return VDW_RADII.get(element.upper(), DEFAULT_VDW_RADIUS)
