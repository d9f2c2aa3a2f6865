"""
Tests for badge geometry and raster compositing
"""
from pathlib import Path

import pytest
from PIL import Image

from apps.overlay.app import compositor
from apps.overlay.app.compositor import (
    BADGE_FILL,
    BadgeGeometry,
    EncodeError,
    ImageLoadError,
    InvalidRequest,
    OverlayRequest,
    Position,
    badge_text,
    compose,
    decode_image,
    encode_png,
    render_overlay,
)
from apps.overlay.app.fonts import BOLD_FONT_CANDIDATES, clear_font_cache, get_badge_font
from tests.conftest import POSTER_COLOR, make_poster, open_png


def _restore_badge(out: Image.Image, src: Image.Image, geo: BadgeGeometry) -> Image.Image:
    """Copy the original pixels back over the badge box."""
    x0, y0, x1, y1 = geo.box()
    patched = out.copy()
    region = (max(x0, 0), max(y0, 0), x1 + 1, y1 + 1)
    patched.paste(src.crop(region), region[:2])
    return patched


def _blend(channel: int) -> int:
    alpha = BADGE_FILL[3] / 255
    return round(channel * (1 - alpha))


class TestPosition:
    @pytest.mark.parametrize("raw", [None, "", "top-left", "top-right", "bottom_left", "Bottom-Left", "bottom-left "])
    def test_anything_but_bottom_left_is_top_left(self, raw):
        assert Position.parse(raw) is Position.TOP_LEFT

    def test_bottom_left(self):
        assert Position.parse("bottom-left") is Position.BOTTOM_LEFT


class TestOverlayRequest:
    @pytest.mark.parametrize("url,rating", [(None, "8.5"), ("", "8.5"), ("http://x/p.jpg", None), ("http://x/p.jpg", "")])
    def test_missing_fields_rejected(self, url, rating):
        with pytest.raises(InvalidRequest) as exc:
            OverlayRequest.from_query(url, rating, "bottom-left")
        assert exc.value.status_code == 400
        assert exc.value.public_message() == "Missing required parameters"

    def test_defaults_to_top_left(self):
        req = OverlayRequest.from_query("http://x/p.jpg", "7.1")
        assert req.position is Position.TOP_LEFT
        assert req.rating == "7.1"


class TestBadgeGeometry:
    @pytest.mark.parametrize("width,expected", [(0, 50), (100, 50), (250, 50), (400, 80), (1000, 200), (401, 80.2)])
    def test_width_scales_with_floor(self, width, expected):
        geo = BadgeGeometry.for_image(width, 600, Position.TOP_LEFT)
        assert geo.width == pytest.approx(expected)
        assert geo.height == 30

    def test_top_left_corner(self):
        geo = BadgeGeometry.for_image(400, 600, Position.TOP_LEFT)
        assert (geo.x, geo.y) == (10, 10)
        assert geo.box() == (10, 10, 89, 39)
        assert geo.text_origin == (18, 30)

    def test_bottom_left_corner(self):
        geo = BadgeGeometry.for_image(400, 600, Position.BOTTOM_LEFT)
        assert (geo.x, geo.y) == (10, 560)
        assert geo.box() == (10, 560, 89, 589)

    def test_short_image_is_not_clamped(self):
        geo = BadgeGeometry.for_image(300, 20, Position.BOTTOM_LEFT)
        assert geo.y == -20


def test_badge_text_prefixes_star():
    assert badge_text("8.5") == "★ 8.5"
    assert badge_text("not a number") == "★ not a number"


class TestRender:
    def test_keeps_dimensions_and_png(self):
        out = open_png(render_overlay(make_poster(400, 600), "8.5"))
        assert out.format == "PNG"
        assert out.size == (400, 600)

    @pytest.mark.parametrize("size", [(1, 1), (37, 900), (1280, 720)])
    def test_any_size_round_trips(self, size):
        out = open_png(render_overlay(make_poster(*size), "9.9", Position.BOTTOM_LEFT))
        assert out.size == size

    def test_only_badge_region_changes(self):
        src = open_png(make_poster(400, 600)).convert("RGB")
        out = open_png(render_overlay(make_poster(400, 600), "8.5")).convert("RGB")
        geo = BadgeGeometry.for_image(400, 600, Position.TOP_LEFT)

        # badge fill darkens the poster (corner pixel is clear of the text)
        r, g, b = out.getpixel((11, 38))
        assert (r, g, b) != src.getpixel((11, 38))
        assert abs(r - _blend(POSTER_COLOR[0])) <= 1
        assert abs(g - _blend(POSTER_COLOR[1])) <= 1
        assert abs(b - _blend(POSTER_COLOR[2])) <= 1

        # outside the badge nothing moved
        assert _restore_badge(out, src, geo).tobytes() == src.tobytes()

    def test_text_is_drawn_in_yellow(self):
        out = open_png(render_overlay(make_poster(400, 600), "8.5")).convert("RGB")
        x0, y0, x1, y1 = BadgeGeometry.for_image(400, 600, Position.TOP_LEFT).box()
        yellowish = [
            out.getpixel((x, y))
            for x in range(x0, x1 + 1)
            for y in range(y0, y1 + 1)
            if out.getpixel((x, y))[0] > 150 and out.getpixel((x, y))[2] < 120
        ]
        assert yellowish

    def test_bottom_left_leaves_top_untouched(self):
        src_bytes = make_poster(400, 600)
        src = open_png(src_bytes).convert("RGB")
        out = open_png(render_overlay(src_bytes, "8.5", Position.BOTTOM_LEFT)).convert("RGB")
        assert out.getpixel((11, 11)) == src.getpixel((11, 11))
        assert out.getpixel((11, 588)) != src.getpixel((11, 588))
        geo = BadgeGeometry.for_image(400, 600, Position.BOTTOM_LEFT)
        assert _restore_badge(out, src, geo).tobytes() == src.tobytes()

    def test_short_poster_bottom_left_draws_off_canvas(self):
        src_bytes = make_poster(300, 20)
        src = open_png(src_bytes).convert("RGB")
        out = open_png(render_overlay(src_bytes, "8.5", Position.BOTTOM_LEFT)).convert("RGB")
        assert out.size == (300, 20)

        # badge spans rows -20..9: visible top rows darkened, rows below untouched
        assert out.getpixel((12, 8)) != src.getpixel((12, 8))
        assert out.getpixel((12, 0)) != src.getpixel((12, 0))
        assert out.getpixel((12, 10)) == src.getpixel((12, 10))
        assert out.getpixel((12, 15)) == src.getpixel((12, 15))
        geo = BadgeGeometry.for_image(300, 20, Position.BOTTOM_LEFT)
        assert _restore_badge(out, src, geo).tobytes() == src.tobytes()

    def test_badge_entirely_off_canvas_leaves_poster_alone(self):
        src = Image.new("RGB", (8, 8), POSTER_COLOR)
        assert compose(src, "8.5", Position.TOP_LEFT).tobytes() == src.tobytes()

    def test_long_rating_is_not_truncated_or_rejected(self):
        out = open_png(render_overlay(make_poster(400, 600), "8.5/10 from 2,345,678 votes"))
        assert out.size == (400, 600)

    def test_mode_follows_source_alpha(self):
        assert open_png(render_overlay(make_poster(mode="RGBA"), "7")).mode == "RGBA"
        assert open_png(render_overlay(make_poster(fmt="JPEG"), "7")).mode == "RGB"

    def test_compose_does_not_resize(self):
        src = Image.new("RGB", (123, 456), POSTER_COLOR)
        assert compose(src, "6.0", Position.TOP_LEFT).size == (123, 456)


class TestFailures:
    @pytest.mark.parametrize("data", [b"", b"<html>not an image</html>", make_poster()[:64]])
    def test_undecodable_bytes(self, data):
        with pytest.raises(ImageLoadError) as exc:
            decode_image(data)
        assert exc.value.status_code == 500
        assert exc.value.public_message().startswith("Error processing image: ")

    def test_encode_failure(self, monkeypatch):
        def boom(self, fp, format=None, **params):
            raise OSError("disk on fire")

        monkeypatch.setattr(compositor.Image.Image, "save", boom)
        with pytest.raises(EncodeError) as exc:
            encode_png(Image.new("RGB", (10, 10)))
        assert "disk on fire" in exc.value.public_message()


class TestFonts:
    def setup_method(self):
        clear_font_cache()

    def teardown_method(self):
        clear_font_cache()

    def test_missing_preferred_font_falls_back(self, tmp_path):
        font = get_badge_font(18, str(tmp_path / "nope.ttf"))
        assert font is not None
        assert get_badge_font(18, str(tmp_path / "nope.ttf")) is font

    def test_render_with_missing_font_path(self, tmp_path):
        out = open_png(render_overlay(make_poster(), "8.5", font_path=str(tmp_path / "nope.ttf")))
        assert out.size == (400, 600)

    def test_star_capable_faces_come_first(self):
        names = [Path(p).name for p in BOLD_FONT_CANDIDATES]
        no_star = [i for i, n in enumerate(names) if n.lower().startswith(("liberation", "arial"))]
        assert no_star
        assert all(n.startswith(("DejaVu", "FreeSans")) for n in names[: min(no_star)])
