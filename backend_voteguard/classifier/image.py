"""
Still-image preparation for the classifier request.

Accepts raw JPEG/PNG bytes or a data URI, bounds the longest side and
re-encodes as JPEG at reduced quality so the request payload stays small.
"""

from __future__ import annotations

import base64
import binascii
import re

import cv2
import numpy as np

_DATA_URI_PREFIX = re.compile(r"^data:image/[\w.+-]+;base64,", re.IGNORECASE)


def decode_still(image: bytes | str) -> bytes:
    """Return raw image bytes; a data URI string has its prefix stripped and is base64-decoded."""
    if isinstance(image, str):
        payload = _DATA_URI_PREFIX.sub("", image.strip(), count=1)
        try:
            return base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValueError("still image is not valid base64") from e
    return bytes(image)


def prepare_image(image: bytes | str, *, max_side: int, jpeg_quality: int) -> bytes:
    """
    Decode, downscale (longest side <= max_side) and re-encode a still as JPEG.

    Raises:
        ValueError: empty input, or bytes OpenCV cannot decode/encode.
    """
    raw = decode_still(image)
    if not raw:
        raise ValueError("No frame data provided")
    frame = cv2.imdecode(np.frombuffer(raw, dtype=np.uint8), cv2.IMREAD_COLOR)
    if frame is None:
        raise ValueError("still image could not be decoded")
    h, w = frame.shape[:2]
    longest = max(h, w)
    if longest > max_side:
        scale = max_side / float(longest)
        size = (max(1, int(round(w * scale))), max(1, int(round(h * scale))))
        frame = cv2.resize(frame, size, interpolation=cv2.INTER_AREA)
    ok, encoded = cv2.imencode(".jpg", frame, [cv2.IMWRITE_JPEG_QUALITY, int(jpeg_quality)])
    if not ok:
        raise ValueError("still image could not be re-encoded")
    return encoded.tobytes()


def to_base64(image: bytes) -> str:
    return base64.b64encode(image).decode("ascii")
