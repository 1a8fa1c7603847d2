#!/usr/bin/env python3
# pinfit service: fit an image under the on-chain byte cap, pin it to IPFS,
# list pins, resolve/probe gateways, SSE updates.

import argparse
import json
import logging
import os
import queue
from datetime import datetime

from flask import Flask, Response, abort, jsonify, request

from pinfit import (DecodeError, Draft, EncodeError, FetchError, GatewayResolver, HttpImageProbe,
                    LoadAttempt, LoadStatus, PinataPublisher, PinfitError, PipelineConfig,
                    PublishError, SourceImage, StaleResultError, iter_load_attempt)

log = logging.getLogger("pinfit.app")

PINS_FILE = "pins.json"


# =============== SSE (server-sent events) ===============
class Broadcaster:
    def __init__(self):
        self._subscribers = []

    def broadcast(self, obj):
        data = "data: " + json.dumps(obj) + "\n\n"
        dead = []
        for q in list(self._subscribers):
            try:
                q.put_nowait(data)
            except queue.Full:
                dead.append(q)
        for q in dead:
            try:
                self._subscribers.remove(q)
            except ValueError:
                pass

    def stream(self):
        q = queue.Queue(maxsize=10)
        self._subscribers.append(q)
        yield "data: " + json.dumps({"type": "hello", "ts": int(datetime.now().timestamp())}) + "\n\n"
        try:
            while True:
                try:
                    yield q.get(timeout=15)
                except queue.Empty:
                    yield ": keep-alive\n\n"
        finally:
            try:
                self._subscribers.remove(q)
            except ValueError:
                pass


# =============== Pin records ====================
def _pins_path(config):
    return os.path.join(config.data_dir, PINS_FILE)


def _load_pins(config):
    path = _pins_path(config)
    if not os.path.exists(path):
        return []
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except ValueError:
            log.warning("ignoring unreadable %s", path)
            return []
    return data if isinstance(data, list) else []


def _append_pin_record(config, record):
    os.makedirs(config.data_dir, exist_ok=True)
    existing = _load_pins(config)
    existing.append(record)
    with open(_pins_path(config), "w", encoding="utf-8") as f:
        json.dump(existing, f, ensure_ascii=False, indent=2)


def _fail(error, status):
    return jsonify({"ok": False, "error": str(error)}), status


# =============== Web app ====================
def create_app(config, publisher=None, probe=None):
    app = Flask(__name__)
    resolver = GatewayResolver(config.gateways)
    draft = Draft(config, publisher=publisher or PinataPublisher(config))
    probe = probe or HttpImageProbe(timeout=config.timeout)
    events = Broadcaster()
    app.config["DRAFT"] = draft
    app.config["EVENTS"] = events

    @app.route("/events")
    def sse():
        return Response(events.stream(), mimetype="text/event-stream")

    @app.route("/source", methods=["POST"])
    def select_source():
        upload = request.files.get("file")
        try:
            if upload is not None:
                source = SourceImage(upload.read(), upload.mimetype or "application/octet-stream")
            else:
                url = (request.get_json(silent=True) or {}).get("url")
                if not url:
                    return _fail("send a 'file' upload or a JSON 'url'", 400)
                source = SourceImage.fetch(url, timeout=config.timeout)
        except FetchError as e:
            return _fail(e, 502)
        generation = draft.select(source)
        return jsonify({"ok": True, "generation": generation, "bytes": len(source.data)})

    @app.route("/encode", methods=["POST"])
    def encode():
        path = (request.get_json(silent=True) or {}).get("path", "pixel")
        try:
            payload = draft.encode(path)
        except ValueError as e:
            return _fail(e, 400)
        except DecodeError as e:
            return _fail(e, 422)
        except StaleResultError as e:
            return _fail(e, 409)
        except EncodeError as e:
            return _fail(e, 500)
        except PinfitError as e:
            return _fail(e, 400)
        info = {
            "profile": payload.profile.name,
            "width": payload.width,
            "height": payload.height,
            "size": payload.size,
            "fits": payload.size <= config.max_bytes,
            "maxBytes": config.max_bytes,
        }
        events.broadcast({"type": "encoded", **info})
        return jsonify({"ok": True, **info})

    @app.route("/preview")
    def preview():
        payload = draft.payload
        if payload is None:
            abort(404)
        return Response(payload.data, mimetype=payload.mime_type)

    @app.route("/publish", methods=["POST"])
    def publish():
        filename = (request.get_json(silent=True) or {}).get("filename") or "image"
        try:
            cid, payload = draft.publish(filename)
        except PublishError as e:
            return jsonify({"ok": False, "error": str(e), "status": e.status}), 502
        except StaleResultError as e:
            return _fail(e, 409)
        except PinfitError as e:
            return _fail(e, 400)
        record = {
            "cid": cid,
            "url": resolver.resolve(cid),
            "file": filename,
            "size": payload.size,
            "tsMs": int(datetime.now().timestamp() * 1000),
        }
        _append_pin_record(config, record)
        events.broadcast({"type": "published", "cid": cid})
        return jsonify({"ok": True, "record": record})

    @app.route("/pins.json")
    def pins():
        return jsonify({"ok": True, "items": _load_pins(config)})

    @app.route("/resolve/<path:cid>")
    def resolve(cid):
        return jsonify({"ok": True, "url": resolver.resolve(cid),
                        "fallbacks": resolver.fallback_urls(cid)})

    @app.route("/probe", methods=["POST"])
    def probe_route():
        body = request.get_json(silent=True) or {}
        if body.get("cid"):
            attempt = LoadAttempt.start(body["cid"], resolver)
        elif body.get("url"):
            attempt = LoadAttempt.for_url(body["url"], resolver)
        else:
            return _fail("send a JSON 'cid' or 'url'", 400)
        history = [attempt.to_dict()]
        for attempt in iter_load_attempt(attempt, resolver, probe):
            history.append(attempt.to_dict())
        return jsonify({"ok": attempt.status is LoadStatus.SUCCESS, "final": attempt.to_dict(),
                        "history": history})

    return app


def main():
    parser = argparse.ArgumentParser(description="pinfit HTTP service")
    parser.add_argument("--dev", action="store_true", help="use Flask's development server")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    config = PipelineConfig.from_env()
    if not config.publisher_configured:
        log.warning("PINATA_JWT is not set; /publish will fail")
    app = create_app(config)

    print(f"Serving on http://0.0.0.0:{config.port}")
    if args.dev:
        app.run(host="0.0.0.0", port=config.port, debug=False)
    else:
        from waitress import serve as waitress_serve
        waitress_serve(app, host="0.0.0.0", port=config.port)


if __name__ == "__main__":
    main()
