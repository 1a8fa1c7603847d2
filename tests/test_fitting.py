import pytest

from pinfit import EncodingProfile, fit_to_ceiling, transcode, walk_ladder
from pinfit import fitting
from pinfit.config import PIXEL_LADDER
from tests.conftest import as_source, gradient, noise

LADDER = (
    EncodingProfile("q90-128", 128, 128, "image/jpeg", 0.9, pixelated=True),
    EncodingProfile("q60-96", 96, 96, "image/jpeg", 0.6, pixelated=True),
    EncodingProfile("q30-64", 64, 64, "image/jpeg", 0.3, pixelated=True),
)


def _sizes(source, ladder):
    return [transcode(source, p).size for p in ladder]


def _first_fitting(sizes, ceiling):
    for i, size in enumerate(sizes):
        if size <= ceiling:
            return i
    return len(sizes) - 1


@pytest.mark.parametrize("pick", [0, 1, 2])
def test_returns_first_profile_that_fits(noise_source, pick):
    sizes = _sizes(noise_source, LADDER)
    ceiling = sizes[pick]
    result = fit_to_ceiling(noise_source, LADDER, ceiling)
    assert result.profile is LADDER[_first_fitting(sizes, ceiling)]
    assert result.size <= ceiling


def test_falls_back_to_last_profile_when_nothing_fits(noise_source):
    result = fit_to_ceiling(noise_source, LADDER, 10)
    assert result.profile is LADDER[-1]
    assert result.size > 10


def test_walk_is_strictly_increasing_and_stops_at_first_fit(noise_source):
    sizes = _sizes(noise_source, LADDER)
    ceiling = sizes[1]
    steps = list(walk_ladder(noise_source, LADDER, ceiling))
    indices = [s.index for s in steps]
    assert indices == list(range(len(steps)))
    assert steps[-1].fits
    assert not any(s.fits for s in steps[:-1])


def test_walk_visits_every_profile_once_when_nothing_fits(noise_source):
    steps = list(walk_ladder(noise_source, LADDER, 1))
    assert [s.index for s in steps] == [0, 1, 2]
    assert [s.payload.profile for s in steps] == list(LADDER)
    assert not any(s.fits for s in steps)


def test_source_decoded_once_per_walk(noise_source, monkeypatch):
    calls = []
    real_decode = fitting.decode

    def counting_decode(source):
        calls.append(source)
        return real_decode(source)

    monkeypatch.setattr(fitting, "decode", counting_decode)
    list(walk_ladder(noise_source, LADDER, 1))
    assert len(calls) == 1


def test_empty_ladder(noise_source):
    with pytest.raises(ValueError):
        fit_to_ceiling(noise_source, (), 16_000)


def test_large_png_scenario():
    """2000x2000 opaque PNG, 16 kB cap, [128px/q0.5, 64px/q0.3]."""
    source = as_source(gradient((2000, 2000)))
    ladder = (
        EncodingProfile("128", 128, 128, "image/jpeg", 0.5, pixelated=True),
        EncodingProfile("64", 64, 64, "image/jpeg", 0.3, pixelated=True),
    )
    sizes = _sizes(source, ladder)
    result = fit_to_ceiling(source, ladder, 16_000)
    assert result.profile is ladder[_first_fitting(sizes, 16_000)]
    assert result.size <= 16_000
    assert (result.width, result.height) == (128, 128)


def test_noisy_photo_still_fits_default_pixel_ladder():
    result = fit_to_ceiling(as_source(noise((800, 600))), PIXEL_LADDER, 16_000)
    assert result.size <= 16_000
    assert result.width <= 128 and result.height <= 128
