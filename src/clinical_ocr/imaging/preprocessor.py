"""Shrink raster images to fit the remote payload budget.

Scale to the maximum dimension, then trade quality for bytes in fixed steps
down to a floor, then allow exactly one further down-scale. The returned payload may still exceed
`max_bytes` for pathological inputs.
"""

from __future__ import annotations

import asyncio
import dataclasses
import io
import logging
from typing import TYPE_CHECKING

from PIL import Image, ImageOps, UnidentifiedImageError

from clinical_ocr import constants
from clinical_ocr.core.exceptions import ImageDecodeError
from clinical_ocr.core.types import ImageMimeType, ImagePayload

if TYPE_CHECKING:
    from clinical_ocr.config import FrozenConfig

log = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True, slots=True)
class PreprocessOptions:
    """Byte and pixel budget for one preprocessing run."""

    max_bytes: int = constants.IMAGE_MAX_BYTES
    max_dimension: int = constants.IMAGE_MAX_DIMENSION
    target_mime: ImageMimeType = ImageMimeType.JPEG
    initial_quality: float = constants.IMAGE_DEFAULT_QUALITY
    min_quality: float = constants.IMAGE_MIN_QUALITY
    quality_step: float = constants.IMAGE_QUALITY_STEP

    def __post_init__(self) -> None:
        if self.max_bytes <= 0 or self.max_dimension <= 0:
            raise ValueError("max_bytes and max_dimension must be positive")
        if not 0 < self.min_quality <= self.initial_quality <= 1:
            raise ValueError("expected 0 < min_quality <= initial_quality <= 1")
        if self.quality_step <= 0:
            raise ValueError("quality_step must be positive")

    @classmethod
    def from_config(
        cls, config: FrozenConfig, target_mime: ImageMimeType = ImageMimeType.JPEG
    ) -> PreprocessOptions:
        """Build options from resolved configuration."""
        return cls(
            max_bytes=config.max_bytes,
            max_dimension=config.max_dimension,
            target_mime=target_mime,
            initial_quality=config.initial_quality,
            min_quality=config.min_quality,
            quality_step=config.quality_step,
        )


def decode_image(raw: bytes) -> Image.Image:
    """Decode raw bytes into an upright, fully loaded Pillow image.

    Raises:
        ImageDecodeError: If the bytes are not a decodable image.
    """
    try:
        image = Image.open(io.BytesIO(raw))
        image.load()
        # Apply EXIF orientation
        return ImageOps.exif_transpose(image) or image
    except (UnidentifiedImageError, OSError, Image.DecompressionBombError) as e:
        raise ImageDecodeError(f"Could not decode image: {e}") from e


def _fit_within(image: Image.Image, max_side: int) -> Image.Image:
    width, height = image.size
    longest = max(width, height)
    if longest <= max_side:
        return image
    scale = max_side / longest
    size = (max(1, round(width * scale)), max(1, round(height * scale)))
    return image.resize(size, Image.Resampling.LANCZOS)


def _prepare_mode(image: Image.Image, mime: ImageMimeType) -> Image.Image:
    if mime is ImageMimeType.JPEG:
        if image.mode in ("RGBA", "LA", "P", "PA"):
            rgba = image.convert("RGBA")
            background = Image.new("RGB", rgba.size, (255, 255, 255))
            background.paste(rgba, mask=rgba.getchannel("A"))
            return background
        if image.mode not in ("RGB", "L"):
            return image.convert("RGB")
        return image
    if image.mode not in ("RGB", "RGBA", "L", "LA"):
        return image.convert("RGBA" if "A" in image.getbands() else "RGB")
    return image


def _encode(image: Image.Image, mime: ImageMimeType, quality: float) -> bytes:
    buffer = io.BytesIO()
    params: dict[str, object] = {}
    if mime is ImageMimeType.PNG:
        # Lossless; quality has no effect
        params["optimize"] = True
    else:
        params["quality"] = max(1, min(100, round(quality * 100)))
    _prepare_mode(image, mime).save(buffer, format=mime.pillow_format, **params)
    return buffer.getvalue()


def _payload(
    data: bytes, image: Image.Image, options: PreprocessOptions, quality: float
) -> ImagePayload:
    return ImagePayload(
        data=data,
        mime_type=options.target_mime,
        byte_size=len(data),
        width=image.width,
        height=image.height,
        quality=quality,
    )


def preprocess_sync(raw: bytes, options: PreprocessOptions) -> ImagePayload:
    """Blocking implementation of `preprocess`."""
    source = decode_image(raw)
    rendered = _fit_within(source, options.max_dimension)

    quality = options.initial_quality
    data = _encode(rendered, options.target_mime, quality)
    while len(data) > options.max_bytes and quality > options.min_quality:
        quality = max(options.min_quality, round(quality - options.quality_step, 6))
        data = _encode(rendered, options.target_mime, quality)
        log.debug("Re-encoded at quality %.2f: %d bytes", quality, len(data))

    if len(data) <= options.max_bytes:
        return _payload(data, rendered, options, quality)

    # One best-effort re-scale at the floor quality
    target_side = max(1, round(max(rendered.size) * constants.RESCALE_FACTOR))
    rendered = _fit_within(source, target_side)
    quality = options.min_quality
    data = _encode(rendered, options.target_mime, quality)
    if len(data) > options.max_bytes:
        log.warning(
            "Image still exceeds byte budget after re-scale: %d > %d bytes",
            len(data),
            options.max_bytes,
        )
    return _payload(data, rendered, options, quality)


async def preprocess(
    raw: bytes, options: PreprocessOptions | None = None
) -> ImagePayload:
    """Decode, scale and re-encode an image to fit the payload budget.

    Args:
        raw: Encoded source image bytes (any format Pillow can read).
        options: Budget and target encoding; defaults apply when omitted.

    Returns:
        The encoded payload. `byte_size <= max_bytes` except after the single
        permitted re-scale pass on pathological content.

    Raises:
        ImageDecodeError: If `raw` cannot be decoded.
    """
    return await asyncio.to_thread(
        preprocess_sync, raw, options or PreprocessOptions()
    )
