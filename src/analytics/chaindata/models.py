"""Pydantic models for GoldRush (Covalent) chain-data responses."""

from datetime import datetime

from pydantic import BaseModel, field_validator


def _to_int(value: object) -> int:
    """Parse a uint256 that the API may send as a decimal string."""
    if value is None or value == "":
        return 0
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    return int(str(value))


class RawTransaction(BaseModel):
    """A transaction as returned by transactions_v3."""

    tx_hash: str
    block_signed_at: datetime | None = None
    block_height: int = 0
    successful: bool = True
    from_address: str = ""
    to_address: str | None = None
    to_address_label: str | None = None  # protocol name when the explorer knows it
    value: int = 0  # wei
    gas_price: int = 0  # wei
    gas_spent: int = 0

    @field_validator("value", "gas_price", "gas_spent", "block_height", mode="before")
    @classmethod
    def _parse_int(cls, v: object) -> int:
        return _to_int(v)

    @property
    def timestamp(self) -> int:
        return int(self.block_signed_at.timestamp()) if self.block_signed_at else 0


class TransactionPage(BaseModel):
    """One page of transactions_v3."""

    items: list[RawTransaction] = []
    page_number: int = 0
    has_more: bool = False


class RawBalance(BaseModel):
    """Token balance from balances_v2 (minor units, never floats)."""

    contract_address: str = ""
    contract_ticker_symbol: str | None = None
    contract_decimals: int | None = 18
    type: str = "cryptocurrency"  # "cryptocurrency" | "stablecoin" | "nft" | "dust"
    balance: int = 0
    nft_count: int = 0
    native_token: bool = False

    @field_validator("balance", mode="before")
    @classmethod
    def _parse_balance(cls, v: object) -> int:
        return _to_int(v)


class RawApproval(BaseModel):
    """Open token approval from the approvals endpoint."""

    token_address: str = ""
    token_symbol: str | None = None
    spender_address: str = ""
    spender_label: str | None = None
    allowance: int = 0
    is_unlimited: bool = False

    @field_validator("allowance", mode="before")
    @classmethod
    def _parse_allowance(cls, v: object) -> int:
        if isinstance(v, str) and v.strip().upper() == "UNLIMITED":
            return 2**256 - 1
        return _to_int(v)


class RawChainActivity(BaseModel):
    """Everything fetched for one address on one chain."""

    chain_id: int
    transactions: list[RawTransaction] = []
    balances: list[RawBalance] = []
    approvals: list[RawApproval] = []
    gas_median_wei: int | None = None
