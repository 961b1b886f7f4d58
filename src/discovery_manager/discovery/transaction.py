"""
Transactional execution of atomic operations.

An ``AtomicOperation`` is a single reversible mutation. A ``Transaction``
executes operations one by one and, if anything fails, rolls back the
operations that already ran in reverse order. Interceptors attached to a
transaction (or to a single operation via ``InterceptedOperation``) get
``post_rollback`` whenever the operations they observe were rolled back.

Example:
    tx = Transaction()
    try:
        tx.execute(AddTypeDescriptorToPackageFile(descriptor, root_file))
        storage.save_root_package_file(root_file)
        tx.commit()
    except Exception:
        tx.rollback()
        raise
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable

from discovery_manager.logging import get_logger

logger = get_logger("discovery.transaction")


class AtomicOperation(ABC):
    """A mutation that can be undone."""

    @abstractmethod
    def execute(self) -> None:
        """Apply the mutation."""

    @abstractmethod
    def rollback(self) -> None:
        """Restore the state from before ``execute()``."""


class OperationInterceptor(ABC):
    """Side effect that runs after an operation was executed or rolled back."""

    @abstractmethod
    def post_execute(self) -> None: ...

    @abstractmethod
    def post_rollback(self) -> None: ...


class InterceptedOperation(AtomicOperation):
    """
    Runs interceptors directly after a wrapped operation.

    If an interceptor fails in ``post_execute``, the wrapped operation is
    rolled back, the interceptors that completed ``post_execute`` get
    ``post_rollback`` and the error is re-raised. The failing interceptor
    gets no ``post_rollback``.
    """

    def __init__(
        self,
        operation: AtomicOperation,
        interceptors: OperationInterceptor | Iterable[OperationInterceptor],
    ) -> None:
        if isinstance(interceptors, OperationInterceptor):
            interceptors = [interceptors]
        self._operation = operation
        self._interceptors = list(interceptors)
        self._interceptors_for_rollback: list[OperationInterceptor] = []

    @property
    def operation(self) -> AtomicOperation:
        return self._operation

    def execute(self) -> None:
        self._operation.execute()
        try:
            for interceptor in self._interceptors:
                interceptor.post_execute()
                self._interceptors_for_rollback.append(interceptor)
        except Exception:
            self.rollback()
            raise

    def rollback(self) -> None:
        self._operation.rollback()
        interceptors, self._interceptors_for_rollback = self._interceptors_for_rollback, []
        for interceptor in interceptors:
            interceptor.post_rollback()


class Transaction:
    """Ordered execution of atomic operations with rollback."""

    def __init__(self, interceptors: Iterable[OperationInterceptor] | None = None) -> None:
        self._executed: list[AtomicOperation] = []
        self._interceptors = list(interceptors or [])
        self._finished = False

    def add_interceptor(self, interceptor: OperationInterceptor) -> None:
        self._interceptors.append(interceptor)

    @property
    def executed_operations(self) -> list[AtomicOperation]:
        return list(self._executed)

    def execute(self, operation: AtomicOperation) -> None:
        """
        Execute an operation as part of the transaction.

        An operation that raises is not recorded, so it is never rolled back.
        It must repair its own partial changes before raising.
        """
        if self._finished:
            raise RuntimeError("The transaction is already finished.")
        operation.execute()
        self._executed.append(operation)

    def commit(self) -> None:
        """
        Run ``post_execute`` on all interceptors.

        If one fails, the operations are rolled back, every interceptor gets
        ``post_rollback`` and the error is re-raised.
        """
        if self._finished:
            raise RuntimeError("The transaction is already finished.")
        try:
            for interceptor in self._interceptors:
                interceptor.post_execute()
        except Exception:
            logger.debug("Interceptor failed during commit, rolling back")
            self._rollback_operations()
            for interceptor in self._interceptors:
                interceptor.post_rollback()
            self._finished = True
            raise
        self._executed = []
        self._finished = True

    def rollback(self) -> None:
        """Undo all executed operations. Does nothing once finished."""
        if self._finished:
            return
        self._rollback_operations()
        for interceptor in self._interceptors:
            interceptor.post_rollback()
        self._finished = True

    def run(self, operations: Iterable[AtomicOperation]) -> None:
        """Execute all operations and commit, or roll back and re-raise."""
        try:
            for operation in operations:
                self.execute(operation)
            self.commit()
        except Exception:
            self.rollback()
            raise

    def _rollback_operations(self) -> None:
        executed, self._executed = self._executed, []
        if executed:
            logger.debug("Rolling back %d operation(s)", len(executed))
        for operation in reversed(executed):
            operation.rollback()
