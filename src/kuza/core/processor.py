"""
Vault program entry point.

``VaultProgram.process_instruction`` decodes the operation tag, dispatches to
the state machine and runs the whole operation as one atomic unit: the
record store and both ledgers are rolled back if anything raises.
"""

from __future__ import annotations

import logging
import time
from contextlib import ExitStack
from typing import Callable, Optional

from kuza.core.config import NATIVE_PROGRAM_ID, VaultConfig, get_config
from kuza.core.instruction import Instruction, InstructionRequest, Operation
from kuza.core.ledger import InMemoryLedger, Ledger
from kuza.core.metrics import VaultMetrics
from kuza.core.vault_exceptions import VaultError, get_error_context
from kuza.core.vault_state_machine import VaultReceipt, VaultStateMachine
from kuza.core.vault_store import VaultStore

logger = logging.getLogger(__name__)

Clock = Callable[[], int]


def system_clock() -> int:
    return int(time.time())


class VaultProgram:
    """Decodes and executes signed vault instructions."""

    def __init__(
        self,
        token_ledger: Ledger,
        native_ledger: Ledger,
        config: Optional[VaultConfig] = None,
        store: Optional[VaultStore] = None,
        clock: Optional[Clock] = None,
        metrics: Optional[VaultMetrics] = None,
    ):
        self.config = config or get_config()
        self.store = store if store is not None else VaultStore()
        self.token_ledger = token_ledger
        self.native_ledger = native_ledger
        self.clock = clock or system_clock
        self.metrics = metrics or VaultMetrics()
        self.state_machine = VaultStateMachine(
            self.config, self.store, token_ledger, native_ledger
        )

    @classmethod
    def in_memory(cls, config: Optional[VaultConfig] = None, **kwargs) -> "VaultProgram":
        """Build a program backed by fresh in-memory ledgers."""
        config = config or get_config()
        token_ledger = InMemoryLedger(config.token_program_id, name="token")
        native_ledger = InMemoryLedger(NATIVE_PROGRAM_ID, name="native", auto_create=True)
        return cls(token_ledger, native_ledger, config=config, **kwargs)

    def process_instruction(self, request: InstructionRequest) -> VaultReceipt:
        operation_name = "unknown"
        try:
            instruction = Instruction.decode(request.data)
            operation_name = instruction.operation.name.lower()
            now = self.clock()
            with ExitStack() as stack:
                stack.enter_context(self.store.atomic())
                stack.enter_context(self.token_ledger.atomic())
                stack.enter_context(self.native_ledger.atomic())
                receipt = self._dispatch(instruction, request, now)
        except VaultError as exc:
            self.metrics.record_failure(operation_name, exc.code)
            logger.warning(
                "Vault instruction rejected: %s",
                exc,
                extra={"event": "vault.rejected", "operation": operation_name, **get_error_context(exc)},
            )
            raise

        self.metrics.record_success(operation_name)
        self._record_receipt(instruction.operation, receipt)
        return receipt

    def _dispatch(
        self, instruction: Instruction, request: InstructionRequest, now: int
    ) -> VaultReceipt:
        machine = self.state_machine
        operation = instruction.operation
        if operation is Operation.INITIALIZE:
            return machine.initialize(request, now, instruction.amount or 0)
        if operation is Operation.DEPOSIT:
            return machine.deposit(request, now, instruction.amount)
        if operation is Operation.WITHDRAW:
            return machine.withdraw(request, now)
        if operation is Operation.RELEASE:
            return machine.release(request, now)
        return machine.extend(request, now)

    def _record_receipt(self, operation: Operation, receipt: VaultReceipt) -> None:
        if operation is Operation.INITIALIZE:
            self.metrics.record_fee("entry", receipt.fee_paid)
            self.metrics.record_locked_delta(receipt.amount_moved)
        elif operation is Operation.DEPOSIT:
            self.metrics.record_locked_delta(receipt.amount_moved)
        elif operation in (Operation.WITHDRAW, Operation.RELEASE):
            self.metrics.record_fee("early_exit", receipt.fee_paid)
            self.metrics.record_locked_delta(-receipt.amount_moved)
