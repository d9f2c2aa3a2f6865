# apps/overlay/app/compositor.py
#
# ROLE:
# - Draws the rating badge onto a poster and returns PNG bytes.
#     decode (native size) -> badge geometry -> draw -> encode
#
# NOTES:
# - Pure raster work; the outbound fetch lives in fetch.py.
# - Every image here is owned by one request. Nothing is cached.
# - Rating text is NOT measured or truncated; long strings may run past the
#   badge rectangle.
# - Short posters (H < 40) in bottom-left mode get a negative y. That is
#   drawn as-is (partially off-canvas), not clamped.

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from io import BytesIO
from typing import Optional, Tuple

from PIL import Image, ImageDraw, UnidentifiedImageError

from apps.overlay.app.fonts import get_badge_font

log = logging.getLogger("ratings_overlay.compositor")

# ── Badge style (fixed) ──────────────────────────────────────────────────────
BADGE_MIN_WIDTH = 50
BADGE_WIDTH_RATIO = 0.2
BADGE_HEIGHT = 30
BADGE_PADDING = 10

BADGE_FILL = (0, 0, 0, int(255 * 0.7))   # black, 70% opacity
TEXT_COLOR = "#f5c518"                   # IMDb yellow
TEXT_SIZE = 18
TEXT_OFFSET = (8, 20)                    # from badge origin, to text baseline
STAR = "★"

PNG_MEDIA_TYPE = "image/png"
CACHE_CONTROL = "public, max-age=86400"


# ── Errors ───────────────────────────────────────────────────────────────────
class OverlayError(Exception):
    status_code = 500
    prefix = "Error processing image"

    def public_message(self) -> str:
        return f"{self.prefix}: {self}"


class InvalidRequest(OverlayError):
    status_code = 400

    def public_message(self) -> str:
        return "Missing required parameters"


class ImageLoadError(OverlayError):
    """Source unreachable, non-2xx, or not a decodable image."""


class EncodeError(OverlayError):
    """The composed raster could not be written as PNG."""


# ── Request values ───────────────────────────────────────────────────────────
class Position(str, Enum):
    TOP_LEFT = "top-left"
    BOTTOM_LEFT = "bottom-left"

    @classmethod
    def parse(cls, raw: Optional[str]) -> "Position":
        # Only the exact bottom-left literal flips placement; typos and
        # unknown values stay top-left.
        if raw == cls.BOTTOM_LEFT.value:
            return cls.BOTTOM_LEFT
        return cls.TOP_LEFT


@dataclass(frozen=True)
class OverlayRequest:
    poster_url: str
    rating: str
    position: Position = Position.TOP_LEFT

    @classmethod
    def from_query(
        cls,
        poster_url: Optional[str],
        rating: Optional[str],
        position: Optional[str] = None,
    ) -> "OverlayRequest":
        if not poster_url or not rating:
            raise InvalidRequest("posterUrl and rating are required")
        return cls(poster_url=poster_url, rating=rating, position=Position.parse(position))


@dataclass(frozen=True)
class BadgeGeometry:
    x: int
    y: int
    width: float
    height: int

    @classmethod
    def for_image(cls, width: int, height: int, position: Position) -> "BadgeGeometry":
        badge_w = max(BADGE_MIN_WIDTH, width * BADGE_WIDTH_RATIO)
        y = BADGE_PADDING
        if position is Position.BOTTOM_LEFT:
            y = height - BADGE_HEIGHT - BADGE_PADDING
        return cls(x=BADGE_PADDING, y=y, width=badge_w, height=BADGE_HEIGHT)

    def box(self) -> Tuple[int, int, int, int]:
        """Inclusive pixel box (x0, y0, x1, y1) covered by the badge fill."""
        right = int(round(self.x + self.width)) - 1
        bottom = self.y + self.height - 1
        return self.x, self.y, right, bottom

    @property
    def text_origin(self) -> Tuple[int, int]:
        return self.x + TEXT_OFFSET[0], self.y + TEXT_OFFSET[1]


def badge_text(rating: str) -> str:
    return f"{STAR} {rating}"


# ── Pipeline ─────────────────────────────────────────────────────────────────
def decode_image(data: bytes) -> Image.Image:
    try:
        img = Image.open(BytesIO(data))
        img.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError) as e:
        raise ImageLoadError(f"could not decode image ({type(e).__name__}: {e})") from e
    if img.width <= 0 or img.height <= 0:
        raise ImageLoadError(f"image has no pixels ({img.width}x{img.height})")
    return img


def compose(
    poster: Image.Image,
    rating: str,
    position: Position,
    font_path: Optional[str] = None,
) -> Image.Image:
    """
    Draw the badge for `rating` onto a same-size copy of `poster`.

    The source is never resized. RGB-ish sources come back as RGB, sources
    with transparency come back as RGBA.
    """
    keep_alpha = poster.mode in ("RGBA", "LA", "PA") or "transparency" in poster.info
    canvas = poster.convert("RGBA")

    geo = BadgeGeometry.for_image(canvas.width, canvas.height, position)
    log.debug("badge %s at (%s,%s) w=%s on %sx%s", position.value, geo.x, geo.y, geo.width, *canvas.size)

    # composite only the on-canvas part of the badge box
    bx0, by0, bx1, by1 = geo.box()
    x0, y0 = max(bx0, 0), max(by0, 0)
    x1, y1 = min(bx1 + 1, canvas.width), min(by1 + 1, canvas.height)
    if x0 < x1 and y0 < y1:
        region = canvas.crop((x0, y0, x1, y1))
        shade = Image.new("RGBA", region.size, BADGE_FILL)
        canvas.paste(Image.alpha_composite(region, shade), (x0, y0))

    draw = ImageDraw.Draw(canvas)
    draw.text(
        geo.text_origin,
        badge_text(rating),
        fill=TEXT_COLOR,
        font=get_badge_font(TEXT_SIZE, font_path),
        anchor="ls",
    )

    if not keep_alpha:
        canvas = canvas.convert("RGB")
    return canvas


def encode_png(img: Image.Image) -> bytes:
    buf = BytesIO()
    try:
        img.save(buf, format="PNG")
    except (OSError, ValueError) as e:
        raise EncodeError(f"{type(e).__name__}: {e}") from e
    return buf.getvalue()


def render_overlay(
    data: bytes,
    rating: str,
    position: Position = Position.TOP_LEFT,
    font_path: Optional[str] = None,
) -> bytes:
    """decode -> draw badge -> PNG bytes. Raises ImageLoadError / EncodeError."""
    poster = decode_image(data)
    try:
        composed = compose(poster, rating, position, font_path=font_path)
        try:
            return encode_png(composed)
        finally:
            composed.close()
    finally:
        poster.close()
