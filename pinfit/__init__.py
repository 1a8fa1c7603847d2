"""Fit images under an on-chain byte budget, pin them to IPFS, and load them back
through a prioritized list of gateways."""

from .config import (DEFAULT_GATEWAYS, DEFAULT_MAX_BYTES, FAITHFUL_LADDER, LADDERS,
                     PIXEL_LADDER, EncodingProfile, PipelineConfig)
from .draft import Draft
from .errors import (DecodeError, EncodeError, FetchError, GatewayExhaustedError,
                     PinfitError, PublishError, StaleResultError)
from .fitting import LadderStep, fit_to_ceiling, walk_ladder
from .gateways import (GatewayResolver, HttpImageProbe, LoadAttempt, LoadStatus,
                       drive_load_attempt, extract_identifier, iter_load_attempt)
from .publisher import PinataPublisher
from .transcode import EncodedPayload, SourceImage, decode, render, transcode

__version__ = "0.1.0"
