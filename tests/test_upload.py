import pytest
from PIL import Image

import upload
from tests.conftest import encode_png, gradient


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("PINATA_JWT", "PINFIT_MAX_BYTES", "PINFIT_GATEWAYS"):
        monkeypatch.delenv(name, raising=False)


def _write_source(tmp_path):
    path = tmp_path / "photo.png"
    path.write_bytes(encode_png(gradient((640, 480))))
    return path


def test_encode_to_file(tmp_path, capsys):
    out = tmp_path / "tiny.jpg"
    assert upload.main([str(_write_source(tmp_path)), "--out", str(out)]) == 0

    assert out.stat().st_size <= 16_000
    with Image.open(out) as img:
        assert img.format == "JPEG"
        assert max(img.size) == 128
    assert "pixel-128" in capsys.readouterr().out


def test_publish_without_credential_exits(tmp_path, capsys):
    with pytest.raises(SystemExit) as exc:
        upload.main([str(_write_source(tmp_path)), "--publish"])
    assert exc.value.code == 1
    assert "PINATA_JWT" in capsys.readouterr().err


def test_missing_file(tmp_path, capsys):
    with pytest.raises(SystemExit) as exc:
        upload.main([str(tmp_path / "nope.png")])
    assert exc.value.code == 1
    assert "File not found" in capsys.readouterr().err


def test_unknown_path(tmp_path, capsys):
    with pytest.raises(SystemExit) as exc:
        upload.main([str(_write_source(tmp_path)), "--path", "sepia"])
    assert exc.value.code == 2
    assert "unknown encoding path" in capsys.readouterr().err


def test_bad_numeric_env_goes_through_die(tmp_path, monkeypatch, capsys):
    monkeypatch.setenv("PINFIT_MAX_BYTES", "lots")
    with pytest.raises(SystemExit) as exc:
        upload.main([str(_write_source(tmp_path))])
    assert exc.value.code == 2
    assert "[!]" in capsys.readouterr().err


@pytest.mark.parametrize("src,expected", [
    ("https://cdn.example/img/cat.png?w=200&sig=abc#top", "cat.png"),
    ("https://cdn.example/", "image"),
    ("photos/dog.jpg", "dog.jpg"),
])
def test_pin_name(src, expected):
    assert upload.pin_name(src) == expected
