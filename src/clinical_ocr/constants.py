"""
Project-wide constants for the clinical document extraction pipeline
"""

# ==============================================================================
# Image Preprocessing
# ==============================================================================

_KB = 1024
_MB = 1024 * _KB

IMAGE_MAX_BYTES = 800 * _KB  # Byte budget for remote payloads
IMAGE_MAX_DIMENSION = 2000  # Long edge in pixels
IMAGE_DEFAULT_QUALITY = 0.9
IMAGE_MIN_QUALITY = 0.6
IMAGE_QUALITY_STEP = 0.08
RESCALE_FACTOR = 0.8  # Single best-effort re-scale when the floor is reached

# ==============================================================================
# Local Extraction
# ==============================================================================

OCR_LANGUAGE_HINT = "spa+eng"
DEFAULT_MIN_CHARS = 40  # Fallback heuristic threshold
MAX_FILE_SIZE = 10 * _MB

# ==============================================================================
# Remote Vision
# ==============================================================================

DEFAULT_VISION_MODEL = "gemini-2.0-flash"
VISION_MAX_OUTPUT_TOKENS = 2048
CACHE_TTL_SECONDS = 30 * 24 * 60 * 60  # 30 days

# USD per 1K tokens
COST_INPUT_PER_1K = 0.015
COST_OUTPUT_PER_1K = 0.075
COST_CACHE_READ_PER_1K = 0.0015

# ==============================================================================
# Persistent Store Layout
# ==============================================================================

CACHE_KEY_PREFIX = "ocr_"
CACHE_HITS_KEY = "cache.hits"
CACHE_MISSES_KEY = "cache.misses"
COSTS_KEY = "costs"

# ==============================================================================
# User-facing Messages
# ==============================================================================

NO_TEXT_PLACEHOLDER = "(no text detected)"
