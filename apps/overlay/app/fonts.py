# apps/overlay/app/fonts.py
#
# Badge font resolution. The badge always uses one bold sans face; which file
# backs it depends on what the container has mounted.
#
# ENV:
#   BADGE_FONT_PATH   explicit .ttf/.otf to use before the built-in candidates

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional, Union

from PIL import ImageFont

log = logging.getLogger("ratings_overlay.fonts")

BOLD_FONT_CANDIDATES: List[str] = [
    "/fonts/DejaVuSans-Bold.ttf",
    "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
    "/usr/share/fonts/TTF/DejaVuSans-Bold.ttf",
    "/usr/share/fonts/dejavu/DejaVuSans-Bold.ttf",
    "/usr/share/fonts/truetype/freefont/FreeSansBold.ttf",
    "/usr/share/fonts/gnu-free/FreeSansBold.otf",
    # no U+2605 in the faces below; the star renders as a missing-glyph box
    "/usr/share/fonts/truetype/liberation/LiberationSans-Bold.ttf",
    "/usr/share/fonts/liberation/LiberationSans-Bold.ttf",
    "/Library/Fonts/Arial Bold.ttf",
    "C:/Windows/Fonts/arialbd.ttf",
]

BadgeFont = Union[ImageFont.FreeTypeFont, ImageFont.ImageFont]

_font_cache: Dict[tuple, BadgeFont] = {}


def _candidate_paths(preferred: Optional[str]) -> List[str]:
    paths = []
    if preferred:
        paths.append(preferred)
    paths.extend(BOLD_FONT_CANDIDATES)
    return paths


def get_badge_font(size: int, preferred: Optional[str] = None) -> BadgeFont:
    """
    Return the bold badge font at `size`, cached per (path preference, size).

    Falls back to Pillow's bundled default font when no bold TrueType face
    is installed. Rendering never fails because of a missing font.
    """
    key = (preferred, size)
    if key in _font_cache:
        return _font_cache[key]

    font: Optional[BadgeFont] = None
    for fp in _candidate_paths(preferred):
        if not Path(fp).exists():
            continue
        try:
            font = ImageFont.truetype(fp, size)
            log.info("badge font: %s (%spx)", fp, size)
            break
        except OSError as e:
            log.warning("could not load font %s: %s", fp, e)

    if font is None:
        if preferred:
            log.warning("badge font %s unavailable; using Pillow default", preferred)
        font = ImageFont.load_default(size=size)

    _font_cache[key] = font
    return font


def clear_font_cache() -> None:
    _font_cache.clear()
