# src/synapse_ops/sdk/pynapse_adapter.py
"""Adapter from pynapse (synapse-filecoin-sdk) to the SynapseClient protocol.

pynapse returns dataclasses (AccountInfo, ServiceApproval, RailInfo,
AsyncStorageInfo, AsyncUploadResult) and plain dicts for providers and data
sets. They are mapped field by field onto the frozen results in sdk.client.
Write methods return a bare transaction hash; the deposit flow waits for each
receipt before sending the next transaction because pynapse takes the nonce
from the latest mined block.
"""

from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional

from synapse_ops.config import Settings
from synapse_ops.errors import PreconditionError
from synapse_ops.sdk.client import (
    AccountInfo,
    DataSet,
    Rail,
    ServiceApproval,
    StorageInfo,
    TxReceipt,
    UploadResult,
    UploadStageCallback,
)
from synapse_ops.structured_logging import log_event

log = logging.getLogger("synapse_ops.sdk")

TX_RECEIPT_TIMEOUT_S = 180


def _hex(tx_hash: Any) -> str:
    h = tx_hash.hex() if isinstance(tx_hash, (bytes, bytearray)) else str(tx_hash)
    return h if h.startswith("0x") else f"0x{h}"


def _provider_id(provider: Any) -> Optional[str]:
    # AsyncStorageContext.provider is a ProviderInfo, or None before a provider is chosen.
    if provider is None:
        return None
    return str(provider.provider_id)


class _PynapseContext:
    def __init__(self, ctx: Any, *, with_cdn: bool) -> None:
        self._ctx = ctx
        self.with_cdn = bool(with_cdn)
        self.data_set_id: Optional[int] = None if ctx.data_set_id is None else int(ctx.data_set_id)
        self.provider = _provider_id(ctx.provider)

    async def upload(self, data: bytes, *, on_stage: Optional[UploadStageCallback] = None) -> UploadResult:
        kwargs: dict = {}
        if on_stage is not None:

            async def _stored(piece_cid: Any) -> None:
                await on_stage("stored", str(piece_cid))

            async def _committed(tx_hash: Any) -> None:
                await on_stage("committed", _hex(tx_hash))

            kwargs = {"on_upload_complete": _stored, "on_pieces_added": _committed}

        res = await self._ctx.upload(bytes(data), **kwargs)
        return UploadResult(
            piece_cid=str(res.piece_cid),
            size=int(res.size),
            provider=self.provider,
            tx_hash=None if res.tx_hash is None else _hex(res.tx_hash),
        )

    async def download(self, piece_cid: str) -> bytes:
        return bytes(await self._ctx.download(piece_cid))


class _PynapsePayments:
    """USDFC payments. Every call names the token; wallet_balance() defaults to FIL otherwise."""

    def __init__(self, synapse: Any) -> None:
        from pynapse.utils.constants import TOKENS

        self._s = synapse
        self._p = synapse.payments
        self._token = TOKENS["USDFC"]

    async def _confirm(self, tx_hash: Any) -> TxReceipt:
        h = _hex(tx_hash)
        receipt = await self._s.web3.eth.wait_for_transaction_receipt(h, timeout=TX_RECEIPT_TIMEOUT_S)
        if int(receipt["status"]) != 1:
            raise RuntimeError(f"transaction {h} reverted")
        return TxReceipt(tx_hash=h, block_number=int(receipt["blockNumber"]))

    async def balance(self) -> int:
        return int(await self._p.balance(token=self._token))

    async def wallet_balance(self) -> int:
        return int(await self._p.wallet_balance(token=self._token))

    async def service_approval(self, operator: str) -> ServiceApproval:
        a = await self._p.service_approval(operator, token=self._token)
        return ServiceApproval(
            is_approved=bool(a.is_approved),
            rate_allowance=int(a.rate_allowance),
            lockup_allowance=int(a.lockup_allowance),
            rate_usage=int(a.rate_usage),
            lockup_usage=int(a.lockup_usage),
            max_lockup_period=int(a.max_lockup_period),
        )

    async def account_info(self) -> AccountInfo:
        a = await self._p.account_info(token=self._token)
        return AccountInfo(
            funds=int(a.funds),
            lockup_current=int(a.lockup_current),
            lockup_rate=int(a.lockup_rate),
            available_funds=int(a.available_funds),
            lockup_last_settled_at=int(a.lockup_last_settled_at),
            funded_until_epoch=int(a.funded_until_epoch),
        )

    async def rails_as_payer(self) -> List[Rail]:
        rows = await self._p.get_rails_as_payer(token=self._token)
        return [
            Rail(
                rail_id=int(r.rail_id),
                # A rail gets an end epoch only once it is terminated.
                is_terminated=int(r.end_epoch) > 0,
                payer=r.from_address,
                payee=r.to_address,
                operator=r.operator,
                payment_rate=int(r.payment_rate),
                lockup_period=int(r.lockup_period),
                settled_up_to=int(r.settled_up_to),
                end_epoch=int(r.end_epoch),
            )
            for r in rows
        ]

    async def deposit_and_approve(
        self,
        amount: int,
        operator: str,
        rate_allowance: int,
        lockup_allowance: int,
        max_lockup_period: int,
    ) -> TxReceipt:
        """ERC-20 allowance for the payments contract (when short), deposit, then operator approval.

        Returns the deposit receipt.
        """
        payments_contract = self._s.chain.contracts.payments
        allowance = int(await self._p.allowance(payments_contract, token=self._token))
        if allowance < int(amount):
            approved = await self._confirm(await self._p.approve(payments_contract, int(amount), token=self._token))
            log_event(log, "usdfc_allowance_set", tx_hash=approved.tx_hash, spender=payments_contract, amount=int(amount))

        deposit = await self._confirm(await self._p.deposit(int(amount), token=self._token))
        log_event(log, "deposit_mined", tx_hash=deposit.tx_hash, block_number=deposit.block_number, amount=int(amount))

        service = await self._confirm(
            await self._p.approve_service(
                operator,
                int(rate_allowance),
                int(lockup_allowance),
                int(max_lockup_period),
                token=self._token,
            )
        )
        log_event(log, "operator_approved", tx_hash=service.tx_hash, operator=operator)
        return deposit

    async def withdraw(self, amount: int) -> TxReceipt:
        return await self._confirm(await self._p.withdraw(int(amount), token=self._token))


class PynapseClient:
    """Adapter from pynapse.AsyncSynapse to the SynapseClient protocol."""

    def __init__(self, synapse: Any) -> None:
        self._s = synapse
        self.account = str(synapse.account)
        self.network = str(synapse.chain.name)
        self.payments = _PynapsePayments(synapse)

    def warm_storage_address(self) -> str:
        return str(self._s.chain.contracts.warm_storage)

    async def upload(self, data: bytes) -> UploadResult:
        ctx = await self.create_context({})
        return await ctx.upload(data)

    async def download(self, piece_cid: str) -> bytes:
        return bytes(await self._s.storage.download(piece_cid))

    async def create_context(self, metadata: Mapping[str, str], *, with_cdn: bool = False) -> _PynapseContext:
        ctx = await self._s.storage.get_context(
            with_cdn=bool(with_cdn),
            metadata={str(k): str(v) for k, v in metadata.items()} or None,
        )
        return _PynapseContext(ctx, with_cdn=with_cdn)

    async def storage_info(self) -> StorageInfo:
        info = await self._s.storage.get_storage_info()
        params = info.service_parameters
        return StorageInfo(
            providers=[
                {
                    "id": int(p["provider_id"]),
                    "address": p["service_provider"],
                    "name": p.get("name") or "",
                    "active": bool(p.get("is_active", True)),
                }
                for p in info.providers
            ],
            price_per_tib_month=int(info.pricing_no_cdn.per_tib_per_month),
            price_per_tib_month_cdn=int(info.pricing_with_cdn.per_tib_per_month),
            token_symbol=str(info.token_symbol),
            epochs_per_month=int(params.epochs_per_month),
            min_upload_size=int(params.min_upload_size),
            max_upload_size=int(params.max_upload_size),
            approved_provider_ids=[int(i) for i in info.approved_provider_ids],
        )

    async def data_sets(self) -> List[DataSet]:
        rows = await self._s.storage.find_datasets(client_address=self.account)
        return [
            DataSet(
                data_set_id=int(r["data_set_id"]),
                provider_id=None if r.get("provider_id") is None else int(r["provider_id"]),
                provider=r.get("service_provider"),
                active_piece_count=int(r.get("active_piece_count") or 0),
                is_live=bool(r.get("is_live")),
                with_cdn=bool(r.get("with_cdn")),
                pdp_end_epoch=int(r.get("pdp_end_epoch") or 0),
                metadata={str(k): str(v) for k, v in (r.get("metadata") or {}).items()},
            )
            for r in rows
        ]


async def connect(settings: Settings) -> PynapseClient:
    """Build a live client for the configured RPC endpoint (Calibration by default)."""
    if not settings.private_key:
        raise PreconditionError.missing_credentials("PRIVATE_KEY")

    from pynapse import AsyncSynapse

    synapse = await AsyncSynapse.create(
        rpc_url=settings.rpc_url,
        chain="calibration",
        private_key=settings.private_key,
    )
    client = PynapseClient(synapse)
    log_event(
        log,
        "sdk_connected",
        rpc_url=settings.rpc_url,
        network=client.network,
        account=client.account,
        warm_storage=client.warm_storage_address(),
    )
    return client
