import os
from dataclasses import dataclass, field
from types import MappingProxyType

# ================== Encoding ladders ==================

@dataclass(frozen=True)
class EncodingProfile:
    """One rung of the step-down ladder."""
    name: str
    target_width: int
    target_height: int
    output_format: str = "image/jpeg"
    quality: float = 0.8          # 0..1, mapped onto the encoder's 0..100
    pixelated: bool = False       # nearest-neighbour instead of smooth resampling
    preserve_aspect: bool = True  # fit inside the target box, never upscale

    def __post_init__(self):
        if self.target_width <= 0 or self.target_height <= 0:
            raise ValueError(f"target size must be positive, got "
                             f"{self.target_width}x{self.target_height}")
        if not 0.0 <= self.quality <= 1.0:
            raise ValueError(f"quality must be within [0, 1], got {self.quality}")


PIXEL_LADDER = (
    EncodingProfile("pixel-128", 128, 128, "image/jpeg", 0.5, pixelated=True),
    EncodingProfile("pixel-96",   96,  96, "image/jpeg", 0.4, pixelated=True),
    EncodingProfile("pixel-64",   64,  64, "image/jpeg", 0.3, pixelated=True),
)

FAITHFUL_LADDER = (
    EncodingProfile("faithful-1024", 1024, 1024, "image/jpeg", 0.92),
)

LADDERS = {
    "pixel":    PIXEL_LADDER,
    "faithful": FAITHFUL_LADDER,
}

# ================== Network ==================

DEFAULT_GATEWAYS = (
    "https://ipfs.io/ipfs/",            # most reliable and widely used
    "https://gateway.pinata.cloud/ipfs/",
    "https://cloudflare-ipfs.com/ipfs/",
    "https://dweb.link/ipfs/",
    "https://gateway.ipfs.io/ipfs/",
    "https://ipfs.fleek.co/ipfs/",
    "https://ipfs.infura.io/ipfs/",
    "https://gateway.temporal.cloud/ipfs/",
)

PINATA_API_URL    = "https://api.pinata.cloud/pinning/pinFileToIPFS"
PLACEHOLDER_JWT   = "YOUR_PINATA_JWT_TOKEN"
DEFAULT_MAX_BYTES = 16_000     # practical limit for an inline on-chain field
DEFAULT_TIMEOUT   = 15.0       # seconds, per HTTP request
DEFAULT_PORT      = 5050


def _split_list(raw):
    return tuple(item.strip() for item in raw.split(",") if item.strip())


@dataclass(frozen=True)
class PipelineConfig:
    """Process-wide settings, built once at start-up and passed explicitly."""
    gateways: tuple = DEFAULT_GATEWAYS
    max_bytes: int = DEFAULT_MAX_BYTES
    ladders: dict = field(default_factory=lambda: dict(LADDERS))
    pinata_api_url: str = PINATA_API_URL
    pinata_jwt: str = ""
    timeout: float = DEFAULT_TIMEOUT
    settle_delay: float = 0.0
    data_dir: str = os.path.join(os.path.expanduser("~"), "pinfit")
    port: int = DEFAULT_PORT

    def __post_init__(self):
        # callers may hand in lists
        object.__setattr__(self, "gateways", tuple(self.gateways))
        object.__setattr__(self, "ladders",
                           MappingProxyType({name: tuple(ladder)
                                             for name, ladder in self.ladders.items()}))
        if not self.gateways:
            raise ValueError("at least one gateway is required")
        if self.max_bytes <= 0:
            raise ValueError(f"max_bytes must be positive, got {self.max_bytes}")
        for name, ladder in self.ladders.items():
            if not ladder:
                raise ValueError(f"ladder {name!r} is empty")

    @property
    def publisher_configured(self):
        token = self.pinata_jwt.strip()
        return bool(token) and token != PLACEHOLDER_JWT

    def ladder(self, path):
        try:
            return self.ladders[path]
        except KeyError:
            raise ValueError(f"unknown encoding path {path!r} "
                             f"(expected one of {', '.join(sorted(self.ladders))})") from None

    @classmethod
    def from_env(cls, environ=None):
        env = os.environ if environ is None else environ
        kwargs = {
            "pinata_api_url": env.get("PINATA_API_URL", PINATA_API_URL),
            "pinata_jwt":     env.get("PINATA_JWT", ""),
            "max_bytes":      int(env.get("PINFIT_MAX_BYTES", DEFAULT_MAX_BYTES)),
            "timeout":        float(env.get("PINFIT_TIMEOUT", DEFAULT_TIMEOUT)),
            "settle_delay":   float(env.get("PINFIT_SETTLE_DELAY", "0")),
            "port":           int(env.get("PORT", DEFAULT_PORT)),
        }
        if env.get("PINFIT_GATEWAYS"):
            kwargs["gateways"] = _split_list(env["PINFIT_GATEWAYS"])
        if env.get("PINFIT_DATA_DIR"):
            kwargs["data_dir"] = env["PINFIT_DATA_DIR"]
        return cls(**kwargs)
