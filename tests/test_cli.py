import io

import numpy as np
import pytest
from PIL import Image

from jxldec.cli.decode import main


@pytest.fixture(autouse=True)
def _no_progress(monkeypatch):
    monkeypatch.setenv("JXLDEC_NOPROGRESS", "1")


def _write(path, im, fmt, **params):
    im.save(str(path), format=fmt, **params)
    return str(path)


def _png(tmp_path, name="in.png"):
    rng = np.random.default_rng(3)
    arr = rng.integers(0, 256, size=(6, 5, 4), dtype=np.uint8)
    return _write(tmp_path / name, Image.fromarray(arr), "PNG"), arr


def _jpeg(tmp_path, name="in.jpg"):
    im = Image.new("RGB", (16, 8), (30, 120, 200))
    return _write(tmp_path / name, im, "JPEG", quality=90)


def test_png_to_png(tmp_path):
    src, arr = _png(tmp_path)
    out = str(tmp_path / "out.png")
    assert main([src, out, "--num_threads", "0"]) == 0
    assert np.array_equal(np.asarray(Image.open(out)), arr)


def test_no_arguments_prints_help(capsys):
    assert main([]) == 0
    assert "usage" in capsys.readouterr().out.lower()


def test_version(capsys):
    assert main(["--version"]) == 0
    assert "jxldec" in capsys.readouterr().out


def test_missing_output(tmp_path, capsys):
    src, _ = _png(tmp_path)
    assert main([src]) == 1
    assert "No output file specified" in capsys.readouterr().err


def test_bad_num_threads(tmp_path):
    src, _ = _png(tmp_path)
    assert main([src, str(tmp_path / "o.png"), "--num_threads", "-2"]) == 1


def test_bad_background_fails_before_decode(tmp_path, capsys):
    src, _ = _png(tmp_path)
    out = tmp_path / "o.png"
    assert main([src, str(out), "--alpha_blend", "--background", "red"]) == 1
    assert "Invalid background color red" in capsys.readouterr().err
    assert not out.exists()


def test_missing_input(tmp_path, capsys):
    assert main([str(tmp_path / "nope.jxl"), str(tmp_path / "o.png")]) == 1
    assert "couldn't load" in capsys.readouterr().err


def test_unknown_extension(tmp_path, capsys):
    src, _ = _png(tmp_path)
    assert main([src, str(tmp_path / "o.xyz")]) == 1
    assert "can't decode to the file extension '.xyz'" in capsys.readouterr().err


def test_jpeg_reconstruction_is_lossless(tmp_path, capsys):
    src = _jpeg(tmp_path)
    out = tmp_path / "out.jpg"
    assert main([src, str(out)]) == 0
    assert out.read_bytes() == (tmp_path / "in.jpg").read_bytes()
    assert "Reconstructed to JPEG." in capsys.readouterr().err


def test_jpeg_fallback_to_pixels(tmp_path, capsys):
    src, _ = _png(tmp_path)
    out = tmp_path / "out.jpg"
    assert main([src, str(out)]) == 0
    assert "Retrying with --pixels_to_jpeg" in capsys.readouterr().err
    assert Image.open(str(out)).format == "JPEG"


def test_jpeg_quality_forces_pixels(tmp_path):
    src = _jpeg(tmp_path)
    out = tmp_path / "out.jpg"
    assert main([src, str(out), "-q", "40"]) == 0
    assert out.read_bytes() != (tmp_path / "in.jpg").read_bytes()


def test_output_frames(tmp_path):
    ims = [Image.new("RGB", (4, 4), c) for c in ((255, 0, 0), (0, 255, 0), (0, 0, 255))]
    src = _write(tmp_path / "anim.gif", ims[0], "GIF", save_all=True, append_images=ims[1:], duration=50)
    out = str(tmp_path / "f.png")
    assert main([src, out, "--output_frames"]) == 0
    for j in range(3):
        assert (tmp_path / f"f.png-{j}.png").exists()
    assert not (tmp_path / "f.png").exists()


def test_alpha_blend(tmp_path):
    im = Image.new("RGBA", (3, 3), (10, 20, 30, 0))
    src = _write(tmp_path / "a.png", im, "PNG")
    out = str(tmp_path / "b.png")
    assert main([src, out, "--alpha_blend", "--background", "#102030"]) == 0
    back = np.asarray(Image.open(out))
    assert back.shape == (3, 3, 3)
    assert (back == np.array([16, 32, 48], dtype=np.uint8)).all()


def test_config_file_and_reps(tmp_path, capsys):
    src, _ = _png(tmp_path)
    cfg = tmp_path / "cfg.yaml"
    cfg.write_text("num_reps: 2\ndisable_output: true\nnum_threads: 1\n")
    assert main([src, "--config", str(cfg)]) == 0
    err = capsys.readouterr().err
    assert "2 reps, 1 threads." in err
    assert "mean of 2: " in err


def test_print_read_bytes(tmp_path, capsys):
    src, _ = _png(tmp_path)
    assert main([src, "--disable_output", "--print_read_bytes", "--quiet"]) == 0
    size = len((tmp_path / "in.png").read_bytes())
    assert capsys.readouterr().err.strip() == f"Decoded bytes: {size}"


def test_stdout_output(tmp_path, capsysbinary):
    src, arr = _png(tmp_path)
    assert main([src, "-", "--output_format", "png", "--quiet"]) == 0
    data = capsysbinary.readouterr().out
    assert data.startswith(b"\x89PNG")
    assert np.array_equal(np.asarray(Image.open(io.BytesIO(data))), arr)


def test_alpha_blend_color_key_png(tmp_path):
    im = Image.new("RGB", (2, 2), (0, 0, 0))
    im.putpixel((0, 0), (50, 60, 70))
    src = _write(tmp_path / "key.png", im, "PNG", transparency=(0, 0, 0))
    out = str(tmp_path / "blend.png")
    assert main([src, out, "--alpha_blend", "--background", "white", "--quiet"]) == 0
    back = np.asarray(Image.open(out))
    assert back.shape == (2, 2, 3)
    assert back[0, 0].tolist() == [50, 60, 70]
    assert back[1, 1].tolist() == [255, 255, 255]


def test_truncated_input(tmp_path, capsys):
    rng = np.random.default_rng(9)
    arr = rng.integers(0, 256, size=(64, 64, 3), dtype=np.uint8)
    buf = io.BytesIO()
    Image.fromarray(arr).save(buf, format="JPEG", quality=95)
    data = buf.getvalue()
    src = tmp_path / "cut.jpg"
    src.write_bytes(data[: len(data) // 2])
    out = tmp_path / "cut.png"
    assert main([str(src), str(out)]) == 1
    assert "couldn't decode input" in capsys.readouterr().err
    assert not out.exists()
    assert main([str(src), str(out), "--allow_partial_files"]) == 0
    assert Image.open(str(out)).size == (64, 64)


def test_downsampling_flag(tmp_path):
    src = _write(tmp_path / "big.jpg", Image.new("RGB", (64, 32), (90, 90, 90)), "JPEG")
    out = tmp_path / "small.png"
    assert main([src, str(out), "-s", "2"]) == 0
    assert Image.open(str(out)).size == (32, 16)
