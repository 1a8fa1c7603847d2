"""Shared test fixtures."""

import io
import random

import pytest
import requests
from PIL import Image

from pinfit import PipelineConfig, SourceImage

G0 = "https://g0.example/ipfs/"
G1 = "https://g1.example/ipfs/"
G2 = "https://g2.example/ipfs/"


def encode_png(img):
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def gradient(size=(256, 256)):
    """Smooth, opaque RGB gradient; compresses well."""
    r = Image.linear_gradient("L").resize(size)
    g = r.transpose(Image.Transpose.ROTATE_90).resize(size)
    b = Image.new("L", size, 96)
    return Image.merge("RGB", (r, g, b))


def noise(size=(256, 256), seed=0):
    """Deterministic high-entropy RGB image; compresses badly."""
    rng = random.Random(seed)
    data = rng.randbytes(size[0] * size[1] * 3)
    return Image.frombytes("RGB", size, data)


def as_source(img):
    return SourceImage(encode_png(img), "image/png")


@pytest.fixture
def gradient_source():
    return as_source(gradient())


@pytest.fixture
def noise_source():
    return as_source(noise())


@pytest.fixture
def config(tmp_path):
    return PipelineConfig(gateways=(G0, G1, G2), pinata_jwt="test-jwt", data_dir=str(tmp_path))


class FakeResponse:
    def __init__(self, status_code=200, body=None, text="", headers=None, content=b""):
        self.status_code = status_code
        self.content = content
        self._body = body
        self.text = text
        self.headers = headers or {}

    @property
    def ok(self):
        return 200 <= self.status_code < 400

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}")

    def json(self):
        if self._body is None:
            raise ValueError("no JSON body")
        return self._body

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


class FakeSession:
    """Records calls; answers from a queue of responses or exceptions."""

    def __init__(self, *answers):
        self.answers = list(answers)
        self.calls = []

    def _next(self, method, url, kwargs):
        self.calls.append((method, url, kwargs))
        answer = self.answers.pop(0)
        if isinstance(answer, Exception):
            raise answer
        return answer

    def post(self, url, **kwargs):
        return self._next("POST", url, kwargs)

    def get(self, url, **kwargs):
        return self._next("GET", url, kwargs)
