"""Token list endpoint."""

from typing import Optional

from fastapi import APIRouter, Query

from lzswap.config import get_settings
from lzswap.tokens import tokens_for_chain

router = APIRouter(prefix="/api")


@router.get("/tokens")
async def list_tokens(chain_id: Optional[int] = Query(None, alias="chainId")):
    """Tokens offered for selection on a chain (defaults to the configured chain)."""
    chain_id = chain_id if chain_id is not None else get_settings().chain_id
    tokens = tokens_for_chain(chain_id)
    return {
        "chainId": chain_id,
        "tokens": [token.to_dict() for token in tokens],
    }
