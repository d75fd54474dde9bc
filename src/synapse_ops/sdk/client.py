"""Typed boundary around the Synapse storage SDK.

Only the operations the walkthroughs actually call are described here. Every
token amount is an int in base units (USDFC: 18 decimals).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Protocol

Json = Dict[str, Any]

# Upload stages reported to an on_stage callback: ("stored", piece_cid) once the
# provider holds the bytes, ("committed", tx_hash) once the piece is added on chain.
UploadStageCallback = Callable[[str, str], Awaitable[None]]


@dataclass(frozen=True)
class UploadResult:
    piece_cid: str
    size: int
    provider: Optional[str] = None
    tx_hash: Optional[str] = None


@dataclass(frozen=True)
class ServiceApproval:
    is_approved: bool
    rate_allowance: Optional[int]
    lockup_allowance: Optional[int]
    rate_usage: int = 0
    lockup_usage: int = 0
    max_lockup_period: int = 0


@dataclass(frozen=True)
class AccountInfo:
    funds: int
    lockup_current: int
    lockup_rate: int
    available_funds: int
    lockup_last_settled_at: int
    funded_until_epoch: int = 0


@dataclass(frozen=True)
class Rail:
    rail_id: int
    is_terminated: bool
    payer: Optional[str] = None
    payee: Optional[str] = None
    operator: Optional[str] = None
    payment_rate: int = 0
    lockup_period: int = 0
    settled_up_to: Optional[int] = None
    end_epoch: int = 0


@dataclass(frozen=True)
class TxReceipt:
    tx_hash: str
    block_number: Optional[int] = None


@dataclass(frozen=True)
class StorageInfo:
    """Service pricing and limits.

    providers are dicts with id, address, name and active keys.
    """

    providers: List[Json] = field(default_factory=list)
    price_per_tib_month: Optional[int] = None
    price_per_tib_month_cdn: Optional[int] = None
    token_symbol: str = "USDFC"
    epochs_per_month: Optional[int] = None
    min_upload_size: Optional[int] = None
    max_upload_size: Optional[int] = None
    approved_provider_ids: List[int] = field(default_factory=list)


@dataclass(frozen=True)
class DataSet:
    """One data set owned by this account, as the warm storage service reports it."""

    data_set_id: int
    provider_id: Optional[int] = None
    provider: Optional[str] = None
    active_piece_count: int = 0
    is_live: bool = False
    with_cdn: bool = False
    pdp_end_epoch: int = 0
    metadata: Dict[str, str] = field(default_factory=dict)


class StorageContext(Protocol):
    data_set_id: Optional[int]
    provider: Optional[str]
    with_cdn: bool

    async def upload(self, data: bytes, *, on_stage: Optional[UploadStageCallback] = None) -> UploadResult: ...

    async def download(self, piece_cid: str) -> bytes: ...


class PaymentsApi(Protocol):
    async def balance(self) -> int: ...

    async def wallet_balance(self) -> int: ...

    async def service_approval(self, operator: str) -> ServiceApproval: ...

    async def account_info(self) -> AccountInfo: ...

    async def rails_as_payer(self) -> List[Rail]: ...

    async def deposit_and_approve(
        self,
        amount: int,
        operator: str,
        rate_allowance: int,
        lockup_allowance: int,
        max_lockup_period: int,
    ) -> TxReceipt: ...

    async def withdraw(self, amount: int) -> TxReceipt: ...


class SynapseClient(Protocol):
    account: str
    network: str
    payments: PaymentsApi

    def warm_storage_address(self) -> str: ...

    async def upload(self, data: bytes) -> UploadResult: ...

    async def download(self, piece_cid: str) -> bytes: ...

    async def create_context(self, metadata: Mapping[str, str], *, with_cdn: bool = False) -> StorageContext: ...

    async def storage_info(self) -> StorageInfo: ...

    async def data_sets(self) -> List[DataSet]: ...
