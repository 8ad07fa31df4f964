"""Constants for Sitewright."""

from sitewright import __version__

# Application constants
APP_NAME = "sitewright"
APP_VERSION = __version__

# Default paths
DEFAULT_OUTPUT_DIR = "redesign"
DEFAULT_LOG_DIR = ".logs"
DEFAULT_CONFIG_FILE = "sitewright.yaml"

# Model tiers: a high-capability tier for image-critical content and a
# cost-efficient tier for text-heavy content
TIER_HIGH = "high"
TIER_EFFICIENT = "efficient"
MODEL_TIERS = [TIER_HIGH, TIER_EFFICIENT]

DEFAULT_TIER_MODELS = {
    TIER_HIGH: "gpt-5",
    TIER_EFFICIENT: "gpt-4o",
}

# Provider quotas (tokens per sliding window)
DEFAULT_TIER_MAX_TOKENS = {
    TIER_HIGH: 30000,
    TIER_EFFICIENT: 800000,
}
DEFAULT_WINDOW_SECONDS = 60.0

# Router budgets (tokens per minute allocated to each tier)
DEFAULT_HIGH_BUDGET = 20000
DEFAULT_EFFICIENT_BUDGET = 10000
DEFAULT_BUFFER_TOKENS = 3000
DEFAULT_MAX_CHUNK_TOKENS = 25000  # Conservative per-chunk ceiling
TEXT_HEAVY_IMAGE_RATIO = 0.3
IMAGE_HEAVY_IMAGE_RATIO = 0.7

# Rough planning figures, not provider pricing
COST_PER_1K_TOKENS = {
    TIER_HIGH: 0.03,
    TIER_EFFICIENT: 0.005,
}
GENERATION_TOKENS_PER_SECOND = 100

# Token estimation
CHARS_PER_TOKEN = 4.0
DATA_URL_CHARS_PER_TOKEN = 3.5  # base64 payloads are token-denser than prose

# Image classification thresholds (characters of src)
LARGE_INLINE_IMAGE_CHARS = 50000
HERO_CANDIDATE_IMAGE_CHARS = 10000
HERO_POSITION_LIMIT = 3
IMAGE_CONTEXT_SNIPPET_CHARS = 200

# Chunking thresholds
MIN_SECTION_CHARS = 50
MIN_MIXED_CHARS = 100
INLINE_SCRIPT_LIMIT = 10000

# Streaming
INTER_CHUNK_DELAY_SECONDS = 0.1
PLACEHOLDER_CHUNK_SECONDS = 10.0

# Chunked-processing decision thresholds
CHUNKING_SIZE_THRESHOLD = 75000
CHUNKING_COMBINED_SIZE_THRESHOLD = 50000
CHUNKING_TOKEN_THRESHOLD = 20000
CHUNKING_IMAGE_THRESHOLD = 8
CHUNKING_COMBINED_IMAGE_THRESHOLD = 5

# Content optimization
OPTIMIZATION_THRESHOLD_KB = 500
ESSENTIAL_CONTENT_CHARS = 75000
LARGE_SVG_CHARS = 10000

# OpenAI
DEFAULT_LLM_TIMEOUT = 120
DEFAULT_MAX_RETRIES = 2
DEFAULT_MAX_OUTPUT_TOKENS = 32000

# Submission ceilings
MAX_URL_LENGTH = 2048
MAX_HTML_BYTES = 5 * 1024 * 1024
MAX_CSS_BYTES = 3 * 1024 * 1024
MAX_JS_BYTES = 2 * 1024 * 1024
MAX_IMAGES = 500
MAX_TITLE_LENGTH = 500
MAX_DESCRIPTION_LENGTH = 2000
MAX_METADATA_ENTRIES = 100
MAX_INSTRUCTIONS_LENGTH = 2000
DESIGN_STYLES = ["modern", "minimal", "creative", "corporate"]
