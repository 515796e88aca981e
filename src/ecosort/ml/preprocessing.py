"""Image preprocessing: upload checks, decoding, and model input tensors."""

from __future__ import annotations

import io

import numpy as np
from numpy.typing import NDArray
from PIL import Image, ImageOps, UnidentifiedImageError

from ecosort.errors import ImageValidationError

SUPPORTED_FORMATS: frozenset[str] = frozenset({"image/jpeg", "image/png", "image/webp"})

MODEL_INPUT_SIZE: int = 224

DEFAULT_MAX_PIXELS: int = 16_777_216

# Channel statistics the classifier was trained with. Fixed, never per-image.
CHANNEL_MEAN: NDArray[np.float32] = np.array([0.485, 0.456, 0.406], dtype=np.float32)
CHANNEL_STD: NDArray[np.float32] = np.array([0.229, 0.224, 0.225], dtype=np.float32)


def validate_upload(content_type: str | None, size: int, max_size: int) -> None:
    """Reject uploads with an unsupported MIME type or an oversized body.

    Raises:
        ImageValidationError: 400 for the wrong type, 413 when too large.
    """
    if content_type not in SUPPORTED_FORMATS:
        raise ImageValidationError("Please upload a JPEG, PNG, or WebP image")
    if size > max_size:
        limit_mb = max_size / (1024 * 1024)
        raise ImageValidationError(f"Image size must be less than {limit_mb:g}MB", status_code=413)


def decode_image(image_bytes: bytes, max_pixels: int = DEFAULT_MAX_PIXELS) -> NDArray[np.uint8]:
    """Decode raw image bytes into an HxWx3 RGB uint8 array.

    EXIF orientation is applied so the pixels match what the user saw. The
    pixel count is checked from the header, before any pixel data is read.

    Raises:
        ImageValidationError: 400 if the bytes are not a decodable image,
            413 if the image has more than ``max_pixels`` pixels.
    """
    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            if img.width * img.height > max_pixels:
                raise ImageValidationError(
                    f"Image is {img.width}x{img.height}; at most {max_pixels} pixels are allowed",
                    status_code=413,
                )
            img = ImageOps.exif_transpose(img)
            rgb = img.convert("RGB")
    except Image.DecompressionBombError as e:
        raise ImageValidationError(f"Image too large: {e}", status_code=413) from None
    except (UnidentifiedImageError, OSError) as e:
        raise ImageValidationError(f"Invalid image: {e}") from None
    return np.asarray(rgb, dtype=np.uint8)


def preprocess_for_classification(image: NDArray[np.uint8]) -> NDArray[np.float32]:
    """Prepare an image for the waste classifier.

    Pipeline:
    1. Drop alpha / expand grayscale to RGB
    2. Nearest-neighbour resize to MODEL_INPUT_SIZE square
    3. Scale [0, 255] -> [0.0, 1.0]
    4. Normalize with CHANNEL_MEAN / CHANNEL_STD
    5. HWC -> NCHW (1, 3, 224, 224)
    """
    if image.ndim == 2:
        image = np.stack([image] * 3, axis=-1)
    elif image.shape[-1] == 1:
        image = np.repeat(image, 3, axis=-1)
    image = np.ascontiguousarray(image[..., :3], dtype=np.uint8)

    resized = Image.fromarray(image).resize(
        (MODEL_INPUT_SIZE, MODEL_INPUT_SIZE),
        Image.Resampling.NEAREST,
    )
    tensor = np.asarray(resized, dtype=np.float32) / 255.0
    tensor = (tensor - CHANNEL_MEAN) / CHANNEL_STD
    tensor = np.transpose(tensor, (2, 0, 1))
    return np.expand_dims(tensor, axis=0).astype(np.float32)
