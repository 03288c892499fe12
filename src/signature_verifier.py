from __future__ import annotations

import json
from typing import Optional

from nacl.exceptions import BadSignatureError
from nacl.signing import VerifyKey
from pydantic import ValidationError

from .interaction_models import Interaction
from .logger_factory import get_logger
from .utils.logfmt import fmt

SIGNATURE_HEADER = "x-signature-ed25519"
TIMESTAMP_HEADER = "x-signature-timestamp"

log = get_logger("SignatureVerifier")


def verify_signature(body: bytes, signature: Optional[str], timestamp: Optional[str], public_key: str) -> bool:
    """Check Discord's Ed25519 signature over timestamp + raw body.

    `body` must be the bytes exactly as received; a re-serialized body will
    not verify.
    """
    if not signature or not timestamp:
        return False
    try:
        key = VerifyKey(bytes.fromhex(public_key))
        key.verify(timestamp.encode("utf-8") + body, bytes.fromhex(signature))
    except (BadSignatureError, ValueError, TypeError) as e:
        log.debug(f"signature-invalid {fmt('err', type(e).__name__)}")
        return False
    return True


def read_verified_interaction(
    body: bytes,
    signature: Optional[str],
    timestamp: Optional[str],
    public_key: str,
) -> Optional[Interaction]:
    """Verify, then parse JSON from the same bytes. None means reject with 401."""
    if not verify_signature(body, signature, timestamp, public_key):
        return None
    try:
        return Interaction.model_validate(json.loads(body))
    except (ValueError, ValidationError) as e:
        # Signed but unusable payloads are rejected the same way as bad signatures
        log.warning(f"interaction-parse-error {fmt('err', e)}")
        return None
