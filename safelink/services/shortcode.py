"""
Short Code Generator

Short codes are derived from the link's database id and the server secret:

    code = base64url(sha256(f"{secret}:{id}")[:6]), unpadded

Design Decisions:
- Deterministic: the same (secret, id) pair always yields the same code, so
  code uniqueness follows from id uniqueness without a separate negotiation
- Opaque: ids cannot be recovered or enumerated without the secret
- 6 digest bytes give a 2^48 code space and 8-character codes
- Codes are persisted, so rotating the secret never changes issued codes
"""

import base64
import hashlib

DIGEST_BYTES = 6
SHORT_CODE_LENGTH = 8


def generate_short_code(secret: str, link_id: int) -> str:
    """
    Generate the short code for a link id.

    Args:
        secret: Server-held secret
        link_id: Database id of the link row

    Returns:
        URL-safe code of SHORT_CODE_LENGTH characters
    """
    digest = hashlib.sha256(f"{secret}:{link_id}".encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest[:DIGEST_BYTES]).decode("ascii").rstrip("=")
