#!/usr/bin/env python3
# Fit an image under the on-chain byte cap and (optionally) pin it to IPFS.
#   python upload.py photo.jpg --path pixel --out tiny.jpg --publish --probe
import argparse
import sys
from pathlib import Path
from urllib.parse import urlparse

from pinfit import (GatewayResolver, HttpImageProbe, LoadAttempt, LoadStatus, PinataPublisher,
                    PinfitError, PipelineConfig, SourceImage, drive_load_attempt, walk_ladder)


def die(msg, code=1):
    print(f"[!] {msg}", file=sys.stderr); sys.exit(code)


def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Fit an image under the on-chain byte cap and pin it.")
    p.add_argument("source", help="image file path or http(s) URL")
    p.add_argument("--path", default="pixel", help="encoding ladder: pixel or faithful")
    p.add_argument("--max-bytes", type=int, help="override PINFIT_MAX_BYTES")
    p.add_argument("--out", help="write the encoded payload here")
    p.add_argument("--publish", action="store_true", help="pin the payload to IPFS")
    p.add_argument("--name", help="filename to pin under (default: source file name)")
    p.add_argument("--probe", action="store_true", help="after publishing, load it back through the gateways")
    return p.parse_args(argv)


def load_source(src, config):
    if src.startswith(("http://", "https://")):
        return SourceImage.fetch(src, timeout=config.timeout)
    path = Path(src)
    if not path.exists():
        die(f"File not found: {path}")
    return SourceImage.from_path(path)


def pin_name(src):
    """Last path segment of a file path or URL, without query or fragment."""
    if src.startswith(("http://", "https://")):
        src = urlparse(src).path
    return Path(src).name or "image"


def main(argv=None):
    args = parse_args(argv)

    try:
        config = PipelineConfig.from_env()
        max_bytes = args.max_bytes or config.max_bytes
        ladder = config.ladder(args.path)
        print("[*] Loading source…")
        source = load_source(args.source, config)

        print(f"[*] Fitting under {max_bytes} bytes ({args.path} ladder)…")
        step = None
        for step in walk_ladder(source, ladder, max_bytes):
            p = step.payload
            print(f"    {p.profile.name}: {p.width}x{p.height}, {p.size} bytes"
                  f"{'' if step.fits else '  (too big)'}")
        payload = step.payload
        if not step.fits:
            print(f"[!] Nothing fit; keeping {payload.profile.name} at {payload.size} bytes", file=sys.stderr)

        if args.out:
            Path(args.out).write_bytes(payload.data)
            print(f"[+] Wrote {args.out}")

        if not args.publish:
            return 0

        name = args.name or pin_name(args.source)
        print("[*] Pinning…")
        cid = PinataPublisher(config).publish(payload, name)
    except PinfitError as e:
        die(str(e))
    except ValueError as e:
        die(str(e), code=2)

    resolver = GatewayResolver(config.gateways)
    print("\n[+] Pinned!")
    print(f"    CID:  {cid}")
    print(f"    View: {resolver.resolve(cid)}")

    if args.probe:
        def report(attempt):
            if attempt.status is LoadStatus.LOADING:
                print(f"[probe] failed, trying {attempt.url}")
            else:
                print("[probe] all gateways failed")

        final = drive_load_attempt(LoadAttempt.start(cid, resolver), resolver,
                                   HttpImageProbe(timeout=config.timeout), on_failure=report)
        if final.status is LoadStatus.SUCCESS:
            print(f"[✓] Loaded via {final.url}")
        else:
            return 3
    return 0


if __name__ == "__main__":
    sys.exit(main())
