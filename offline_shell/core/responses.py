"""
Responses synthesized when neither the network nor the cache can answer.
Clients match on these exact bodies, so they must not change.
"""

import json

from offline_shell.models.http import CapturedResponse

OFFLINE_STATUS = 503
TEXT_CONTENT_TYPE = "text/plain;charset=UTF-8"
JSON_CONTENT_TYPE = "application/json"

ASSET_UNAVAILABLE_TEXT = "Recurso não disponível offline"
CONTENT_UNAVAILABLE_TEXT = "Conteúdo não disponível offline"
DATA_UNAVAILABLE_PAYLOAD = {
    "error": "Sem conexão",
    "message": "Dados não disponíveis offline",
    "offline": True,
}


def _text_response(text: str) -> CapturedResponse:
    return CapturedResponse(
        status=OFFLINE_STATUS,
        headers={"Content-Type": TEXT_CONTENT_TYPE},
        body=text.encode("utf-8"),
    )


def asset_unavailable() -> CapturedResponse:
    """Cache-first miss with the network down."""
    return _text_response(ASSET_UNAVAILABLE_TEXT)


def content_unavailable() -> CapturedResponse:
    """Default strategy with nothing to fall back to."""
    return _text_response(CONTENT_UNAVAILABLE_TEXT)


def data_unavailable() -> CapturedResponse:
    """Network-first miss with the network down."""
    body = json.dumps(DATA_UNAVAILABLE_PAYLOAD, ensure_ascii=False, separators=(",", ":"))
    return CapturedResponse(
        status=OFFLINE_STATUS,
        headers={"Content-Type": JSON_CONTENT_TYPE},
        body=body.encode("utf-8"),
    )
