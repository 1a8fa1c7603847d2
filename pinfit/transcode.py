import base64
import io
import logging
import math
import mimetypes
import struct
from dataclasses import dataclass
from pathlib import Path

import requests
from PIL import Image, ImageOps, UnidentifiedImageError

from .errors import DecodeError, EncodeError, FetchError

log = logging.getLogger(__name__)

# MIME type -> (Pillow format, keeps alpha)
ENCODERS = {
    "image/jpeg": ("JPEG", False),
    "image/webp": ("WEBP", True),
    "image/png":  ("PNG", True),
}

WEBP_METHOD = 4   # 0-6; 4 is much faster than 6 with small quality tradeoff
BACKGROUND  = (255, 255, 255)


@dataclass(frozen=True)
class SourceImage:
    data: bytes
    mime_type: str

    @classmethod
    def from_path(cls, path):
        path = Path(path)
        mime, _ = mimetypes.guess_type(path.name)
        return cls(path.read_bytes(), mime or "application/octet-stream")

    @classmethod
    def fetch(cls, url, session=None, timeout=15.0):
        """Download a source image over HTTP."""
        http = session or requests
        try:
            r = http.get(url, timeout=timeout)
            r.raise_for_status()
        except requests.RequestException as e:
            raise FetchError(f"could not fetch {url}: {e}") from e
        mime = r.headers.get("Content-Type", "").split(";")[0].strip()
        return cls(r.content, mime or "application/octet-stream")


@dataclass(frozen=True)
class EncodedPayload:
    data: bytes
    profile: object
    width: int
    height: int

    @property
    def size(self):
        return len(self.data)

    @property
    def mime_type(self):
        return self.profile.output_format

    @property
    def data_url(self):
        """Inline form, as stored directly in an on-chain string field."""
        return f"data:{self.mime_type};base64,{base64.b64encode(self.data).decode('ascii')}"


# =============== Decode ===============

def decode(source):
    """Decode a SourceImage into a Pillow image at its natural size."""
    declared = (source.mime_type or "").lower()
    if declared and not (declared.startswith("image/") or declared == "application/octet-stream"):
        raise DecodeError(f"not an image: declared type {source.mime_type}")
    try:
        img = Image.open(io.BytesIO(source.data))
        img.load()
        # match browser rendering of rotated camera photos
        return ImageOps.exif_transpose(img)
    except (UnidentifiedImageError, OSError, ValueError, SyntaxError, struct.error,
            Image.DecompressionBombError) as e:
        raise DecodeError(f"could not decode source image: {e}") from e


# =============== Encode ===============

def _round_dim(value):
    return max(1, int(math.floor(value + 0.5)))


def target_size(natural, profile):
    w, h = natural
    if not profile.preserve_aspect:
        return _round_dim(profile.target_width), _round_dim(profile.target_height)
    scale = min(profile.target_width / w, profile.target_height / h, 1.0)
    return _round_dim(w * scale), _round_dim(h * scale)


def _has_alpha(img):
    return img.mode in ("RGBA", "LA", "PA") or (img.mode == "P" and "transparency" in img.info)


def _prepare_mode(img, keeps_alpha):
    if _has_alpha(img):
        rgba = img.convert("RGBA")
        if keeps_alpha:
            return rgba
        flat = Image.new("RGB", rgba.size, BACKGROUND)
        flat.paste(rgba, mask=rgba.getchannel("A"))
        return flat
    if img.mode in ("RGB", "L"):
        return img
    return img.convert("RGB")


def render(img, profile):
    """Draw a decoded image onto a surface sized for `profile` and encode it."""
    try:
        pil_format, keeps_alpha = ENCODERS[profile.output_format]
    except KeyError:
        raise EncodeError(f"unsupported output format {profile.output_format}") from None

    size = target_size(img.size, profile)
    surface = _prepare_mode(img, keeps_alpha)
    if surface.size != size:
        resample = Image.Resampling.NEAREST if profile.pixelated else Image.Resampling.LANCZOS
        surface = surface.resize(size, resample)

    quality = int(round(profile.quality * 100))
    buf = io.BytesIO()
    try:
        if pil_format == "JPEG":
            surface.save(buf, format="JPEG", quality=quality)
        elif pil_format == "WEBP":
            surface.save(buf, format="WEBP", quality=quality, method=WEBP_METHOD)
        else:
            surface.save(buf, format="PNG", optimize=True)
    except (OSError, ValueError) as e:
        raise EncodeError(f"{pil_format} encoder failed: {e}") from e

    data = buf.getvalue()
    log.debug("encoded %s: %dx%d -> %d bytes", profile.name, size[0], size[1], len(data))
    return EncodedPayload(data, profile, size[0], size[1])


def transcode(source, profile):
    """Decode `source` and re-encode it at `profile`'s size and quality."""
    return render(decode(source), profile)
