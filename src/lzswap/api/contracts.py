"""Swap API request and response contracts."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from lzswap.tokens import TokenRef, is_raw_amount


class TokenPayload(BaseModel):
    """TokenRef-shaped object as sent by the browser client."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    chain_id: int = Field(..., alias="chainId", description="Chain ID")
    address: str = Field(..., min_length=1, description="Token address or native sentinel")
    decimals: int = Field(..., ge=0, le=255, description="Token decimals")
    symbol: str = Field(default="", description="Token symbol")
    name: str = Field(default="", description="Token name")
    logo_uri: str = Field(default="", alias="logoURI", description="Token logo URI")

    def to_token(self) -> TokenRef:
        return TokenRef(
            chain_id=self.chain_id,
            address=self.address,
            decimals=self.decimals,
            symbol=self.symbol,
            name=self.name,
            logo_uri=self.logo_uri,
        )


class SwapQuoteRequest(BaseModel):
    """Body of ``POST /api/swap``."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    token_in: TokenPayload = Field(..., alias="tokenIn")
    token_out: TokenPayload = Field(..., alias="tokenOut")
    amount_in: str = Field(..., alias="amountIn", description="Raw integer amount of tokenIn")
    wallet_address: str = Field(..., alias="walletAddress", min_length=1)

    @field_validator("amount_in", mode="before")
    @classmethod
    def _raw_amount(cls, value: Any) -> str:
        if isinstance(value, int) and not isinstance(value, bool):
            value = str(value)
        if not isinstance(value, str) or not is_raw_amount(value) or int(value) == 0:
            raise ValueError("amountIn must be a positive raw integer string")
        return value


class SwapQuoteResponse(BaseModel):
    """Successful quote response."""

    quote: str = Field(..., description="Output amount, four decimal places")
    route: Optional[dict] = Field(None, description="Execution plan (to, calldata, value)")
    route_details: Optional[dict] = Field(None, alias="routeDetails", description="Backend route metadata")

    model_config = ConfigDict(populate_by_name=True)


class ErrorResponse(BaseModel):
    error: str
