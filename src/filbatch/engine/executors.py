"""
Batch execution engine.

Sequences nonce/balance lookups, batch construction, balance validation,
signing, submission and confirmation polling for both payment paths:

- BatchExecutor: one native message per recipient, signed and pushed in
  strict array order; per-message failures are collected, not raised.
- MulticallBatchExecutor: one Multicall3 transaction for the whole batch;
  signing or broadcast failure collapses into a single failed outcome.

Construction-time problems (bad address, insufficient balance, missing
signer) raise before any signature is requested.
"""

import asyncio
import logging
from typing import List, Optional, Sequence, Union

from web3 import Web3

from ..adapters.filecoin.constants import (
    FALLBACK_MULTICALL_GAS_PER_CALL,
    GAS_BUFFER_PERCENT,
    SIG_TYPE_SECP256K1,
    atto_to_fil,
)
from ..adapters.filecoin.fees import prepare_recipients_with_fees
from ..adapters.filecoin.messages import NativeMessageBuilder
from ..adapters.filecoin.multicall import MulticallBatchBuilder
from ..adapters.filecoin.router import AddressRouter
from ..adapters.filecoin.schemas import (
    BalanceCheck,
    BatchExecutionResult,
    BatchProgress,
    BatchProgressEntry,
    BatchRecipient,
    ErrorMode,
    MessageSignature,
    Recipient,
    SignedMessage,
    TransactionStatusReport,
)
from ..adapters.filecoin.signatures import Signer, message_signing_payload, signature_to_lotus_data
from ..clients.lotus import LotusClient
from ..schemas.bases import BatchState, TransactionStatus
from .exceptions import (
    InsufficientFundsError,
    InvalidTransition,
    NetworkError,
    SignerUnavailableError,
    StatusTimeoutError,
)
from .states import BatchStateMachine

logger = logging.getLogger(__name__)

SUBMISSION_DELAY = 1.0
NO_SIGNER_MESSAGE = "No signing function provided - wallet not connected"

AnyRecipient = Union[Recipient, BatchRecipient]

__all__ = [
    "BatchExecutor",
    "MulticallBatchExecutor",
    "monitor_batch_progress",
    "prepare_recipients_with_fees",
]


def _insufficient(check: BalanceCheck) -> InsufficientFundsError:
    return InsufficientFundsError(
        f"Insufficient balance. Required: {atto_to_fil(check.required)} FIL, "
        f"Available: {atto_to_fil(check.available)} FIL, "
        f"Shortfall: {atto_to_fil(check.shortfall)} FIL",
        check=check,
    )


class _ExecutorBase:
    """Shared state-machine handling for both executors."""

    def __init__(self, lotus: LotusClient, state_machine: Optional[BatchStateMachine] = None):
        self.lotus = lotus
        self.state_machine = state_machine or BatchStateMachine()

    def _begin(self) -> None:
        """Return to idle from a finished run, then enter building."""
        fsm = self.state_machine
        if fsm.state in (BatchState.BUILDING, BatchState.SIGNING, BatchState.PENDING):
            raise InvalidTransition(
                f"Batch already in progress ({fsm.state.value})",
                current_state=fsm.state,
                target_state=BatchState.BUILDING,
            )
        if fsm.state != BatchState.IDLE:
            fsm.transition(BatchState.IDLE)
        fsm.transition(BatchState.BUILDING)

    def _abandon_without_signer(self) -> None:
        self.state_machine.transition(BatchState.IDLE)
        raise SignerUnavailableError(NO_SIGNER_MESSAGE)

    def _settle(
        self,
        reports: Sequence[TransactionStatusReport],
        max_attempts: int,
        raise_on_timeout: bool,
    ) -> None:
        """
        Move a pending batch to confirmed or failed.

        Raises:
            StatusTimeoutError: If ``raise_on_timeout`` is set and any report
                timed out. The state has already been settled.
        """
        if self.state_machine.state == BatchState.PENDING:
            confirmed = reports and all(r.status == TransactionStatus.CONFIRMED for r in reports)
            self.state_machine.transition(BatchState.CONFIRMED if confirmed else BatchState.FAILED)

        timed_out = [r for r in reports if r.timed_out]
        if raise_on_timeout and timed_out:
            raise StatusTimeoutError(
                f"{len(timed_out)} transaction(s) still pending after {max_attempts} attempts",
                cid=timed_out[0].cid,
                attempts=max_attempts,
            )


class BatchExecutor(_ExecutorBase):
    """
    Native multi-message executor.

    Args:
        lotus: Node API.
        builder: Message builder; defaults to one on ``lotus``.
        submission_delay: Seconds to wait between successful submissions.
        chain_id: Selects the f/t prefix used for delegated recipients.
        state_machine: Optional shared state machine (e.g. with observers).
    """

    def __init__(
        self,
        lotus: LotusClient,
        builder: Optional[NativeMessageBuilder] = None,
        submission_delay: float = SUBMISSION_DELAY,
        chain_id: int = 314,
        state_machine: Optional[BatchStateMachine] = None,
    ) -> None:
        super().__init__(lotus, state_machine)
        self.builder = builder or NativeMessageBuilder(lotus, AddressRouter.for_chain(chain_id))
        self.submission_delay = submission_delay

    async def execute(
        self,
        recipients: Sequence[AnyRecipient],
        sender: str,
        dry_run: bool = False,
        signer: Optional[Signer] = None,
    ) -> BatchExecutionResult:
        """
        Build, validate and (unless ``dry_run``) sign and submit a batch.

        Args:
            recipients: Fee-inclusive recipient rows.
            sender: Filecoin address of the paying wallet.
            dry_run: Stop after validation and return ``dry-run-{i}`` ids.
            signer: Signing capability; required when not a dry run.

        Returns:
            BatchExecutionResult: ``transaction_cids`` holds the CIDs that
                were accepted, ``errors`` one entry per failed message.

        Raises:
            ValidationError: Bad address or insufficient balance
                (``InsufficientFundsError.check`` has the details).
            RpcError: Nonce or balance lookup failed.
            SignerUnavailableError: Live run without a signer.
        """
        fsm = self.state_machine
        self._begin()
        try:
            sender = self.builder.router.to_filecoin_address(sender)
            nonce, balance = await asyncio.gather(
                self.lotus.mpool_get_nonce(sender),
                self.lotus.wallet_balance(sender),
            )
            logger.info(f"Current nonce: {nonce}, balance: {atto_to_fil(balance)} FIL")

            batch = await self.builder.build_batch_transaction(recipients, sender, nonce)
            check = self.builder.validate_balance(balance, batch)
            if not check.is_valid:
                raise _insufficient(check)
        except Exception:
            fsm.transition(BatchState.FAILED)
            raise

        fsm.transition(BatchState.REVIEW)

        if dry_run:
            logger.info(f"Dry run completed: {len(batch.messages)} messages")
            return BatchExecutionResult(
                success=True,
                transaction_cids=[f"dry-run-{i}" for i in range(len(batch.messages))],
                batch_result=batch,
                state=fsm.state,
                dry_run=True,
            )

        if signer is None:
            self._abandon_without_signer()

        fsm.transition(BatchState.SIGNING)
        transaction_cids: List[str] = []
        errors: List[str] = []
        total = len(batch.messages)

        for i, message in enumerate(batch.messages):
            try:
                logger.info(f"Signing transaction {i + 1}/{total} to {message.to}")
                signature = await signer.sign_message(message_signing_payload(message))
                signed = SignedMessage(
                    message=message,
                    signature=MessageSignature(
                        type=SIG_TYPE_SECP256K1,
                        data=signature_to_lotus_data(signature),
                    ),
                )
                cid = await self.lotus.mpool_push(signed)
                transaction_cids.append(cid)
                logger.info(f"Transaction {i + 1} submitted with CID: {cid}")

                if i < total - 1:
                    await asyncio.sleep(self.submission_delay)
            # Wallet rejections surface as arbitrary exception types
            except Exception as e:
                error = f"Transaction {i + 1} failed: {e}"
                logger.error(error)
                errors.append(error)

        fsm.transition(BatchState.PENDING if transaction_cids else BatchState.FAILED)
        return BatchExecutionResult(
            success=not errors,
            transaction_cids=transaction_cids,
            errors=errors,
            batch_result=batch,
            state=fsm.state,
        )

    async def wait_for_confirmation(
        self,
        cids: Sequence[str],
        max_attempts: int = 30,
        interval: float = 10.0,
        raise_on_timeout: bool = False,
    ) -> List[TransactionStatusReport]:
        """
        Poll every CID concurrently; moves a pending batch to confirmed when
        all messages succeeded, otherwise to failed.

        Args:
            cids: CIDs returned by :meth:`execute`.
            max_attempts: Lookups per CID before giving up.
            interval: Seconds between lookups.
            raise_on_timeout: Raise instead of returning when a message was
                never found.

        Raises:
            StatusTimeoutError: Only with ``raise_on_timeout``.
        """
        reports = await asyncio.gather(*(
            self.lotus.poll_transaction_status(cid, max_attempts, interval) for cid in cids
        ))
        self._settle(reports, max_attempts, raise_on_timeout)
        return list(reports)


class MulticallBatchExecutor(_ExecutorBase):
    """
    Aggregated single-transaction executor.

    Args:
        lotus: Node API (eth_* methods are used).
        builder: Multicall builder; defaults to one routing addresses with
            the prefix of ``chain_id``'s network.
        chain_id: EVM chain id used when signing.
        state_machine: Optional shared state machine.
    """

    def __init__(
        self,
        lotus: LotusClient,
        builder: Optional[MulticallBatchBuilder] = None,
        chain_id: int = 314,
        state_machine: Optional[BatchStateMachine] = None,
    ) -> None:
        super().__init__(lotus, state_machine)
        self.builder = builder or MulticallBatchBuilder(AddressRouter.for_chain(chain_id))
        self.chain_id = chain_id

    async def _estimate_gas(self, call: dict, call_count: int) -> int:
        try:
            return await self.lotus.eth_estimate_gas(call)
        except NetworkError as e:
            fallback = FALLBACK_MULTICALL_GAS_PER_CALL * call_count
            logger.warning(f"Gas estimation unreachable, using {fallback} gas: {e}")
            return fallback

    async def execute(
        self,
        recipients: Sequence[AnyRecipient],
        sender: str,
        error_mode: Union[ErrorMode, str] = ErrorMode.PARTIAL,
        dry_run: bool = False,
        signer: Optional[Signer] = None,
    ) -> BatchExecutionResult:
        """
        Build and submit one ``aggregate3Value`` transaction.

        Args:
            recipients: Fee-inclusive recipient rows.
            sender: 0x or f410 address of the paying wallet.
            error_mode: ATOMIC or PARTIAL failure policy.
            dry_run: Stop after validation and return one synthetic id.
            signer: Signing capability; required when not a dry run.

        Returns:
            BatchExecutionResult: One transaction hash on success; on a
                signing or broadcast failure ``success`` is False with a
                single error.

        Raises:
            ValidationError: Empty batch, bad address or insufficient balance.
            RpcError: A lookup failed, or the node rejected the gas estimate
                (a reverting batch). Transport failures during estimation
                fall back to a conservative per-call gas limit.
            SignerUnavailableError: Live run without a signer.
        """
        fsm = self.state_machine
        self._begin()
        try:
            batch = self.builder.build(recipients, error_mode)
            sender_evm = self.builder.router.to_evm_address(sender)
            call = {
                "from": sender_evm,
                "to": batch.to,
                "data": batch.data,
                "value": hex(batch.value),
            }
            nonce, balance, gas, gas_price = await asyncio.gather(
                self.lotus.eth_get_transaction_count(sender_evm),
                self.lotus.eth_get_balance(sender_evm),
                self._estimate_gas(call, batch.recipient_count),
                self.lotus.eth_gas_price(),
            )
            gas_limit = gas * (100 + GAS_BUFFER_PERCENT) // 100
            required = batch.value + gas_limit * gas_price
            check = BalanceCheck(
                is_valid=balance >= required,
                required=required,
                available=balance,
                shortfall=None if balance >= required else required - balance,
            )
            if not check.is_valid:
                raise _insufficient(check)
        except Exception:
            fsm.transition(BatchState.FAILED)
            raise

        fsm.transition(BatchState.REVIEW)

        if dry_run:
            return BatchExecutionResult(
                success=True,
                transaction_cids=["dry-run-0"],
                batch_result=batch,
                state=fsm.state,
                dry_run=True,
            )

        if signer is None:
            self._abandon_without_signer()

        fsm.transition(BatchState.SIGNING)
        tx = {
            "to": Web3.to_checksum_address(batch.to),
            "data": batch.data,
            "value": batch.value,
            "gas": gas_limit,
            "gasPrice": gas_price,
            "nonce": nonce,
            "chainId": self.chain_id,
        }
        try:
            raw_transaction = await signer.sign_transaction(tx)
            tx_hash = await self.lotus.eth_send_raw_transaction(raw_transaction)
        # Wallet rejections surface as arbitrary exception types
        except Exception as e:
            error = f"Batch transaction failed: {e}"
            logger.error(error)
            fsm.transition(BatchState.FAILED)
            return BatchExecutionResult(
                success=False,
                errors=[error],
                batch_result=batch,
                state=fsm.state,
            )

        logger.info(f"Batch of {batch.recipient_count} payments submitted: {tx_hash}")
        fsm.transition(BatchState.PENDING)
        return BatchExecutionResult(
            success=True,
            transaction_cids=[tx_hash],
            batch_result=batch,
            state=fsm.state,
        )

    async def wait_for_confirmation(
        self,
        tx_hash: str,
        max_attempts: int = 30,
        interval: float = 10.0,
        raise_on_timeout: bool = False,
    ) -> TransactionStatusReport:
        """
        Poll the receipt; moves a pending batch to confirmed or failed.

        Raises:
            StatusTimeoutError: Only with ``raise_on_timeout``, when no
                receipt appeared.
        """
        report = await self.lotus.poll_eth_receipt(tx_hash, max_attempts, interval)
        self._settle([report], max_attempts, raise_on_timeout)
        return report


async def monitor_batch_progress(
    lotus: LotusClient,
    cids: Sequence[str],
    recipients: Sequence[AnyRecipient],
) -> BatchProgress:
    """
    One quick status lookup per CID, aggregated into a progress report.

    ``cids[i]`` is matched with ``recipients[i]``; missing recipients are
    reported as ``unknown`` with amount 0.
    """
    reports = await asyncio.gather(*(
        lotus.poll_transaction_status(cid, max_attempts=1, interval=0) for cid in cids
    ))

    entries = []
    for index, report in enumerate(reports):
        if index < len(recipients):
            row = recipients[index]
            row = row.to_batch() if isinstance(row, Recipient) else row
            to, amount = row.address, row.amount
        else:
            to, amount = "unknown", 0
        # A single miss is still pending, not failed
        status = TransactionStatus.PENDING if report.timed_out else report.status
        entries.append(BatchProgressEntry(cid=report.cid, to=to, amount=amount, status=status))

    completed = sum(1 for e in entries if e.status == TransactionStatus.CONFIRMED)
    failed = sum(1 for e in entries if e.status == TransactionStatus.FAILED)
    return BatchProgress(
        total=len(entries),
        completed=completed,
        pending=len(entries) - completed - failed,
        failed=failed,
        transactions=entries,
    )
