"""
Central configuration for badge-press.

Keep runtime-safe (no secrets).
"""

# UI
MAX_LISTED_FAILURES = 20

# Capture
CAPTURE_SCALE = 3.0  # tier 1 oversampling (~300 DPI for mm-sized badges)
FALLBACK_SCALE = 2.0  # tier 2 trades resolution for compatibility
BACKGROUND_FALLBACK = "#ffffff"
CAPTURE_TIMEOUT_MS = 15000

# Encoding
IMAGE_FORMAT = "JPEG"  # "PNG" embeds lossless captures untouched
JPEG_QUALITY = 92

# Scheduling
BATCH_SIZE = 3
SETTLE_DELAY_S = 0.5  # before the first capture
BATCH_PAUSE_S = 0.05  # between batches
FONT_READY_TIMEOUT_S = 5.0

# Rendering surface
FRONT_SELECTOR = ".badge-front .badge"
BACK_SELECTOR = ".badge-back .badge"
SEQUENTIAL_SELECTOR = ".badge"
CARD_SELECTOR = ".badge-flip-container"  # holds one front and, optionally, its back
FLIP_SELECTORS = (".badge-back", ".badge-flip-inner")
FONT_STYLESHEET_HOSTS = ("fonts.googleapis.com", "fonts.gstatic.com")

# Declarations pinned on the in-flight node during a hardened capture.
# Keys are selectors relative to the marked node ("" is the node itself).
HARDENING_RULES = {
    "": "will-change: auto; transform-style: flat; backface-visibility: visible;",
    " *": "will-change: auto; transition: none; animation: none;",
    " .badge": "overflow: hidden;",
    " img": "image-rendering: auto;",
}
