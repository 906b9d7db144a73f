"""
Core configuration constants.
These are transport-agnostic settings.
"""

# -------------------------
# AUDIO CONFIG
# -------------------------
INPUT_SAMPLE_RATE = 16000  # microphone -> live endpoint
OUTPUT_SAMPLE_RATE = 24000  # live endpoint -> speaker
CHANNELS = 1
SAMPLE_WIDTH = 2  # bytes per sample (int16)

# capture block handed to the callback
CAPTURE_FRAMES_PER_BUFFER = 4096
PLAYBACK_FRAMES_PER_BUFFER = 1024

INPUT_MIME_TYPE = f"audio/pcm;rate={INPUT_SAMPLE_RATE}"

# -------------------------
# QUEUE SIZES
# -------------------------
SEND_QUEUE_MAX = 64  # ~16s of 4096-frame blocks at 16 kHz

# -------------------------
# RECOMMENDATION
# -------------------------
PRODUCTS = ("Master P", "Organomineral", "Mineral")
DEFAULT_PRODUCT = "Mineral"

MAX_IMAGE_BYTES = 4 * 1024 * 1024  # 4 MB
ACCEPTED_IMAGE_FORMATS = {"JPEG": "image/jpeg", "PNG": "image/png"}

CORRECTION_NOTICE = (
    "(The model recommended an unknown product; falling back to the default.)"
)

# -------------------------
# MODELS
# -------------------------
ANALYSIS_MODEL = "gemini-2.5-flash"
LIVE_MODEL = "gemini-2.5-flash-native-audio-preview-09-2025"

LIVE_SYSTEM_INSTRUCTION = (
    "You are a friendly and helpful agricultural assistant for ON FERT. "
    "Answer questions about farming, soil health and our products concisely."
)
