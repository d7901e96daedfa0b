"""
Backend access: the chat-completions transport and the per-mode adapters.
"""

from instantsolve.backends.adapter import (
    SUPPORTED_IMAGE_FORMATS,
    ImageModeAdapter,
    ModeAdapter,
    build_adapters,
    validate_image,
)
from instantsolve.backends.client import ChatCompletionsClient

__all__ = [
    "SUPPORTED_IMAGE_FORMATS",
    "ChatCompletionsClient",
    "ImageModeAdapter",
    "ModeAdapter",
    "build_adapters",
    "validate_image",
]
