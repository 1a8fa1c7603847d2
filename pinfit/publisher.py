import json
import logging

import requests

from .errors import PublishError

log = logging.getLogger(__name__)


def _extract_cid(body):
    if not isinstance(body, dict):
        return None
    # pinFileToIPFS (v2) answers {"IpfsHash": ...}; the v3 files API {"data": {"cid": ...}}
    cid = body.get("IpfsHash")
    if not cid and isinstance(body.get("data"), dict):
        cid = body["data"].get("cid")
    return cid or None


class PinataPublisher:
    """Pins encoded payloads and hands back their content identifier.

    No retries: a failed upload raises PublishError and the caller decides.
    """

    def __init__(self, config, session=None):
        self.config = config
        self.session = session or requests.Session()

    def publish(self, payload, filename):
        if not self.config.publisher_configured:
            raise PublishError("pinning credential (PINATA_JWT) is not configured")

        headers = {"Authorization": f"Bearer {self.config.pinata_jwt.strip()}"}
        files = {"file": (filename, payload.data, payload.mime_type)}
        data = {"pinataMetadata": json.dumps({"name": filename})}

        log.info("uploading %s (%d bytes) to %s", filename, payload.size, self.config.pinata_api_url)
        try:
            r = self.session.post(self.config.pinata_api_url, headers=headers, files=files,
                                  data=data, timeout=self.config.timeout)
        except requests.RequestException as e:
            raise PublishError(f"upload failed: {e}", detail=str(e)) from e

        if not 200 <= r.status_code < 300:
            log.warning("pinning endpoint answered HTTP %s: %s", r.status_code, r.text[:200])
            raise PublishError("pinning endpoint rejected the upload",
                               status=r.status_code, detail=r.text)
        try:
            cid = _extract_cid(r.json())
        except ValueError:
            cid = None
        if not cid:
            raise PublishError("pinning response did not contain a content identifier",
                               status=r.status_code, detail=r.text)

        log.info("pinned %s as %s", filename, cid)
        return cid
