"""
Risk-report models.

RiskReport is parsed from the risk service's camelCase JSON. Missing
sections fall back to empty values so that a sparse report is judged by the
conditions rather than rejected by the parser.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class _ReportModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class TokenInfo(_ReportModel):
    mint_authority: Optional[str] = Field(default=None, alias="mintAuthority")
    freeze_authority: Optional[str] = Field(default=None, alias="freezeAuthority")
    is_initialized: bool = Field(default=False, alias="isInitialized")
    supply: Optional[int] = None
    decimals: Optional[int] = None


class TokenMeta(_ReportModel):
    name: str = ""
    symbol: str = ""
    mutable: bool = False


class TopHolder(_ReportModel):
    address: str = ""
    pct: float = 0.0
    insider: bool = False


class MarketInfo(_ReportModel):
    pubkey: Optional[str] = None
    market_type: Optional[str] = Field(default=None, alias="marketType")
    liquidity_a: Optional[str] = Field(default=None, alias="liquidityA")
    liquidity_b: Optional[str] = Field(default=None, alias="liquidityB")


class RiskFlag(_ReportModel):
    name: str = ""
    value: str = ""
    description: str = ""
    score: float = 0
    level: str = ""


DEFAULT_RISKS = (RiskFlag(name="Good", level="good"),)


class RiskReport(_ReportModel):
    """Third-party risk assessment for one mint. Immutable once fetched."""

    mint: str = ""
    creator: Optional[str] = None
    token: TokenInfo = Field(default_factory=TokenInfo)
    token_meta: TokenMeta = Field(default_factory=TokenMeta, alias="tokenMeta")
    top_holders: tuple[TopHolder, ...] = Field(default=(), alias="topHolders")
    markets: tuple[MarketInfo, ...] = ()
    total_lp_providers: int = Field(default=0, alias="totalLPProviders")
    total_market_liquidity: Decimal = Field(default=Decimal("0"), alias="totalMarketLiquidity")
    rugged: bool = False
    score: float = 0
    risks: tuple[RiskFlag, ...] = DEFAULT_RISKS

    @classmethod
    def from_api(cls, mint: str, data: dict) -> "RiskReport":
        """Parse an API payload, normalizing nulls to defaults at any depth."""
        cleaned = _drop_nulls(data)
        cleaned.setdefault("mint", mint)
        if not cleaned.get("risks"):
            cleaned.pop("risks", None)
        for section in ("topHolders", "markets"):
            if not isinstance(cleaned.get(section), list):
                cleaned.pop(section, None)
        return cls.model_validate(cleaned)

    @property
    def creator_or_mint(self) -> str:
        """Creator address, falling back to the mint when unknown."""
        return self.creator or self.mint

    @property
    def name(self) -> str:
        return self.token_meta.name

    @property
    def liquidity_addresses(self) -> set[str]:
        addresses = set()
        for market in self.markets:
            if market.liquidity_a:
                addresses.add(market.liquidity_a)
            if market.liquidity_b:
                addresses.add(market.liquidity_b)
        return addresses


def _drop_nulls(value):
    if isinstance(value, dict):
        return {k: _drop_nulls(v) for k, v in value.items() if v is not None}
    if isinstance(value, list):
        return [_drop_nulls(v) for v in value if v is not None]
    return value


@dataclass(frozen=True)
class RiskDecision:
    """Accept/reject outcome of the risk gate."""
    accept: bool
    reasons: tuple[str, ...] = ()
    report: Optional[RiskReport] = None

    @classmethod
    def rejected(cls, *reasons: str, report: Optional[RiskReport] = None) -> "RiskDecision":
        return cls(accept=False, reasons=tuple(reasons), report=report)


@dataclass
class RiskConfig:
    """Risk gate thresholds. Every limit is configuration, not code."""

    allow_mint_authority: bool = False
    allow_not_initialized: bool = False
    allow_freeze_authority: bool = False
    block_returning_token_names: bool = True
    max_allowed_pct_topholders: float = 25.0
    allow_insider_topholders: bool = True
    exclude_lp_from_topholders: bool = True
    min_total_markets: int = 1
    min_total_lp_providers: int = 1
    min_total_market_liquidity: Decimal = Decimal("20000")
    max_total_market_liquidity: Decimal = Decimal("1000000")
    min_rug_score: float = 0
    max_rug_score: float = 2000
    min_token_price: Decimal = Decimal("0.000001")
    max_token_price: Decimal = Decimal("0.002")
    legacy_not_allowed: tuple[str, ...] = (
        "Freeze Authority still enabled",
        "Single holder ownership",
        "High holder concentration",
    )
    lp_check_exempt_sources: tuple[str, ...] = ("listing",)
    price_check_sources: tuple[str, ...] = ("rpc", "listing")
    request_timeout: float = 10.0
    base_url: str = "https://api.rugcheck.xyz"
    extra_headers: dict[str, str] = field(default_factory=dict)
