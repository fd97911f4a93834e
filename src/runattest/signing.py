"""Hand generated statements to Sigstore keyless signing.

The signing backend only accepts in-toto ``Statement/v1`` documents, so the
``slsa/v2alpha3`` and ``slsa/v2alpha4`` payloads are the ones that can be
signed here. Everything else is rejected before any network call.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

import structlog
from sigstore.dsse import Statement
from sigstore.models import ClientTrustConfig
from sigstore.oidc import IdentityToken, Issuer
from sigstore.sign import SigningContext

from runattest.intoto import STATEMENT_TYPE_V1

logger = structlog.get_logger(__name__)

IN_TOTO_PAYLOAD_TYPE = "application/vnd.in-toto+json"


def statement_payload(statement: Dict[str, Any]) -> bytes:
    """Canonical JSON bytes of a statement, as placed in the signing envelope."""
    return json.dumps(statement, sort_keys=True, separators=(",", ":")).encode("utf-8")


def validate_signable_statement(statement: Dict[str, Any]) -> None:
    if statement.get("_type") != STATEMENT_TYPE_V1:
        raise ValueError(
            f"only {STATEMENT_TYPE_V1} statements can be signed, got {statement.get('_type')!r}"
        )
    if not statement.get("subject"):
        raise ValueError("statement has no subjects to sign for")


def _trust_config(*, staging: bool, offline: bool) -> ClientTrustConfig:
    if staging:
        return ClientTrustConfig.staging(offline=offline)
    return ClientTrustConfig.production(offline=offline)


def load_identity_token(
    *,
    identity_token: Optional[str],
    identity_token_env: str,
    interactive_oidc: bool,
    staging: bool,
    offline: bool,
) -> IdentityToken:
    token = identity_token or os.getenv(identity_token_env)
    if token:
        return IdentityToken(token)

    if not interactive_oidc:
        raise ValueError(
            "missing OIDC token: pass --identity-token, set SIGSTORE_ID_TOKEN, or use --interactive-oidc"
        )

    issuer = Issuer(_trust_config(staging=staging, offline=offline).signing_config.get_oidc_url())
    return issuer.identity_token()


def sign_statement_with_sigstore(
    *,
    statement: Dict[str, Any],
    bundle_out: Path,
    identity_token: Optional[str],
    identity_token_env: str,
    interactive_oidc: bool,
    staging: bool,
    offline: bool,
) -> Dict[str, Any]:
    validate_signable_statement(statement)
    token = load_identity_token(
        identity_token=identity_token,
        identity_token_env=identity_token_env,
        interactive_oidc=interactive_oidc,
        staging=staging,
        offline=offline,
    )
    ctx = SigningContext.from_trust_config(_trust_config(staging=staging, offline=offline))
    with ctx.signer(token, cache=True) as signer:
        bundle = signer.sign_dsse(Statement(statement_payload(statement)))
    bundle_out.parent.mkdir(parents=True, exist_ok=True)
    bundle_out.write_text(bundle.to_json(), encoding="utf-8")
    logger.info("statement signed", bundle=str(bundle_out), subjects=len(statement["subject"]))
    return {
        "bundle_path": str(bundle_out),
        "payload_type": IN_TOTO_PAYLOAD_TYPE,
        "identity": {"subject": token.identity, "issuer": token.issuer},
        "staging": staging,
    }
