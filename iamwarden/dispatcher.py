"""
Parallel Operation Dispatcher
Runs independent exploratory operations concurrently and assembles an ordered report.
"""

import logging
import threading
import time
from abc import ABC, abstractmethod
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from tqdm import tqdm

from iamwarden.errors import OperationCancelled

DEFAULT_LOCAL_DELAY_MS = 100

# How often the join wait checks the cancellation signal
_POLL_INTERVAL = 0.05


@dataclass
class OperationRequest:
    operation: str
    reason: str = ''
    parameters: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'OperationRequest':
        return cls(
            operation=data.get('operation', ''),
            reason=data.get('reason', ''),
            parameters=dict(data.get('parameters') or {}),
        )


@dataclass
class OperationResult:
    operation: str
    result: str = ''
    error: Optional[Exception] = None
    index: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None

    def format_section(self) -> str:
        """Report section for this result; empty for a successful empty result."""
        if self.error is not None:
            return f'[{self.operation}] Error: {self.error}\n\n'
        if self.result:
            return f'[{self.operation}]:\n{self.result}\n\n'
        return ''


class OperationExecutor(ABC):
    """Resolves an operation name and its parameters to result text."""

    @abstractmethod
    def execute_operation(self, operation: str, parameters: Mapping[str, Any]) -> str:
        pass


class OperationDispatcher:
    """
    Fans operations out to one worker thread each.

    In local mode a fixed delay is inserted before launching every operation
    after the first. One operation's failure is embedded in its own report
    section and never affects the others.
    """

    def __init__(self, operation_executor: OperationExecutor, local_mode: bool = True,
                 delay_ms: int = DEFAULT_LOCAL_DELAY_MS, show_progress: bool = False):
        self.operation_executor = operation_executor
        self.local_mode = local_mode
        self.delay_ms = delay_ms if delay_ms > 0 else DEFAULT_LOCAL_DELAY_MS
        self.show_progress = show_progress
        self.logger = logging.getLogger(self.__class__.__name__)

    @classmethod
    def from_config(cls, config: Mapping[str, Any], operation_executor: OperationExecutor) -> 'OperationDispatcher':
        """Build a dispatcher from the ``dispatcher`` section of a loaded config."""
        dispatcher_config = config.get('dispatcher', {})
        return cls(
            operation_executor,
            local_mode=dispatcher_config.get('local_mode', True),
            delay_ms=int(dispatcher_config.get('local_delay_ms', DEFAULT_LOCAL_DELAY_MS)),
            show_progress=dispatcher_config.get('show_progress', False),
        )

    def dispatch(self, operations: Sequence[Union[OperationRequest, Mapping[str, Any]]],
                 cancel_event: Optional[threading.Event] = None) -> str:
        """
        Execute operations concurrently and return the combined report.

        Args:
            operations: Operation requests (or mappings with the same keys)
            cancel_event: Optional signal that aborts the wait for results

        Returns:
            Report with one section per operation, in request order

        Raises:
            OperationCancelled: If ``cancel_event`` is set before all operations finish
        """
        results = self.execute_operations(operations, cancel_event)
        return ''.join(r.format_section() for r in results)

    def execute_operations(self, operations: Sequence[Union[OperationRequest, Mapping[str, Any]]],
                           cancel_event: Optional[threading.Event] = None) -> List[OperationResult]:
        """Execute operations concurrently and return results ordered by request index."""
        requests = [op if isinstance(op, OperationRequest) else OperationRequest.from_dict(op)
                    for op in operations]
        if not requests:
            return []

        results: List[Optional[OperationResult]] = [None] * len(requests)
        executor = ThreadPoolExecutor(max_workers=len(requests), thread_name_prefix='iamwarden-op')
        futures: Dict[Future, int] = {}
        progress = tqdm(total=len(requests), desc='Running operations', disable=not self.show_progress)

        try:
            for index, request in enumerate(requests):
                if self.local_mode and index > 0:
                    self._pace(cancel_event)
                futures[executor.submit(self._run_operation, index, request)] = index

            pending = set(futures)
            while pending:
                if cancel_event is not None and cancel_event.is_set():
                    raise OperationCancelled(f'cancelled with {len(pending)} operations still running')
                done, pending = wait(pending, timeout=_POLL_INTERVAL, return_when=FIRST_COMPLETED)
                for future in done:
                    result = future.result()
                    results[result.index] = result
                    progress.update(1)
        except OperationCancelled:
            self.logger.warning('Operation dispatch cancelled; abandoning running operations')
            executor.shutdown(wait=False, cancel_futures=True)
            raise
        finally:
            progress.close()

        executor.shutdown(wait=True)
        return results

    def _pace(self, cancel_event: Optional[threading.Event]):
        delay = self.delay_ms / 1000.0
        if cancel_event is None:
            time.sleep(delay)
        elif cancel_event.wait(delay):
            raise OperationCancelled('cancelled while launching operations')

    def _run_operation(self, index: int, request: OperationRequest) -> OperationResult:
        self.logger.debug(f'Starting operation {index + 1}: {request.operation}')
        start = time.monotonic()
        try:
            output = self.operation_executor.execute_operation(request.operation, request.parameters)
        except Exception as e:
            duration = time.monotonic() - start
            self.logger.debug(f'Operation {index + 1} failed ({duration:.3f}s): {request.operation} - {e}')
            return OperationResult(operation=request.operation, error=e, index=index)

        duration = time.monotonic() - start
        self.logger.debug(f'Operation {index + 1} completed ({duration:.3f}s): {request.operation}')
        return OperationResult(operation=request.operation, result=output or '', index=index)
