"""Image decoding and payload preprocessing."""

from .preprocessor import PreprocessOptions, decode_image, preprocess

__all__ = ["PreprocessOptions", "decode_image", "preprocess"]
