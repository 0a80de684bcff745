from PIL import Image

from conftest import make_jpeg, make_png
from shutterlog import FALLBACK_SIZE, Lookup, read_caption, read_dimensions


def test_png_description_is_the_caption(tmp_path):
    path = make_png(tmp_path / "a.png", caption="Harbour at dawn")
    assert read_caption(path) == Lookup.found("Harbour at dawn")


def test_jpeg_exif_description_is_the_caption(tmp_path):
    path = make_jpeg(tmp_path / "a.jpg", description="Snow on the ridge")
    assert read_caption(path).get(None) == "Snow on the ridge"


def test_windows_xp_comment(tmp_path):
    path = tmp_path / "xp.jpg"
    exif = Image.Exif()
    exif[0x9C9C] = "Grandma's garden".encode("utf-16-le") + b"\x00\x00"
    Image.new("RGB", (10, 10)).save(path, "JPEG", exif=exif)
    assert read_caption(path).get(None) == "Grandma's garden"


def test_gif_comment(tmp_path):
    path = tmp_path / "a.gif"
    Image.new("P", (8, 8)).save(path, "GIF", comment=b"looping cat")
    assert read_caption(path).get(None) == "looping cat"


def test_image_without_caption(tmp_path):
    result = read_caption(make_png(tmp_path / "plain.png"))
    assert not result.ok
    assert result.get(None) is None


def test_blank_caption_counts_as_missing(tmp_path):
    result = read_caption(make_png(tmp_path / "blank.png", caption="   "))
    assert not result.ok


def test_missing_file_has_no_caption_and_fallback_size(tmp_path):
    missing = tmp_path / "gone.png"
    assert not read_caption(missing).ok
    size = read_dimensions(missing)
    assert not size.ok
    assert size.get(FALLBACK_SIZE) == (800, 800)


def test_corrupt_file_degrades(tmp_path):
    path = tmp_path / "broken.jpg"
    path.write_bytes(b"definitely not a jpeg")
    assert not read_caption(path).ok
    assert read_dimensions(path).get(FALLBACK_SIZE) == FALLBACK_SIZE


def test_dimensions(tmp_path):
    assert read_dimensions(make_png(tmp_path / "a.png", (64, 48))) == Lookup.found((64, 48))


def test_dimensions_follow_exif_rotation(tmp_path):
    path = make_jpeg(tmp_path / "rotated.jpg", (40, 20), orientation=6)
    assert read_dimensions(path).value == (20, 40)


def test_svg_dimensions_from_attributes(tmp_path):
    path = tmp_path / "logo.svg"
    path.write_text('<svg xmlns="http://www.w3.org/2000/svg" width="120px" height="60"></svg>')
    assert read_dimensions(path).value == (120, 60)


def test_svg_dimensions_from_viewbox(tmp_path):
    path = tmp_path / "logo.svg"
    path.write_text('<svg xmlns="http://www.w3.org/2000/svg" width="100%" viewBox="0 0 300 150"></svg>')
    assert read_dimensions(path).value == (300, 150)


def test_svg_without_size(tmp_path):
    path = tmp_path / "logo.svg"
    path.write_text('<svg xmlns="http://www.w3.org/2000/svg"></svg>')
    assert read_dimensions(path).get(FALLBACK_SIZE) == FALLBACK_SIZE
    assert not read_caption(path).ok
