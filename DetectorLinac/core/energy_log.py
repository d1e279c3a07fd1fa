"""Shared per-step energy deposition log."""

import threading
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from .data_models import StepRecord
from ..utils.logging import get_logger


logger = get_logger()


class EnergyDepositionLog:
    """Plaintext record of every simulated step.

    The file is truncated when opened. Workers hand over the records of a
    whole event at once; the log writes them under a lock and in event
    order, holding back events that complete early, so the file content
    does not depend on the number of workers or their scheduling.

    Attributes:
        path: Location of the log file
        records_written: Number of records written since the log was opened
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.records_written = 0
        self._file = None
        self._lock = threading.Lock()
        self._current_run: Optional[int] = None
        self._next_event = 0
        self._pending: Dict[int, List[StepRecord]] = {}

    @property
    def is_open(self) -> bool:
        return self._file is not None

    @staticmethod
    def truncate(path: Union[str, Path]) -> None:
        """Empty the log file at ``path``, creating it if needed."""
        with open(path, 'w'):
            pass
        logger.debug(f"Energy deposition log truncated: {path}")

    def open(self) -> 'EnergyDepositionLog':
        """Create or truncate the log file."""
        if self._file is not None:
            raise RuntimeError(f"Energy deposition log {self.path} is already open")
        self._file = open(self.path, 'w')
        self.records_written = 0
        logger.info(f"Energy deposition log opened: {self.path}")
        return self

    def write_event(self, run_id: int, event_id: int, records: Sequence[StepRecord]) -> None:
        """Hand over all records of one event.

        Every event of a run must be handed over exactly once, including
        events without steps, since later events wait for earlier ones.
        """
        with self._lock:
            if self._file is None:
                raise RuntimeError(f"Energy deposition log {self.path} is not open")
            if run_id != self._current_run:
                self._drain()
                self._current_run = run_id
                self._next_event = 0
            if event_id < self._next_event or event_id in self._pending:
                raise ValueError(f"Event {event_id} of run {run_id} was already written")
            self._pending[event_id] = list(records)
            while self._next_event in self._pending:
                self._write(self._pending.pop(self._next_event))
                self._next_event += 1

    def flush(self) -> None:
        with self._lock:
            if self._file is not None:
                self._file.flush()

    def close(self) -> None:
        """Write any held-back events and close the file."""
        with self._lock:
            if self._file is None:
                return
            self._drain()
            self._file.close()
            self._file = None
        logger.info(f"Energy deposition log closed: {self.records_written} records in {self.path}")

    def _drain(self) -> None:
        if self._pending:
            logger.warning(
                f"Run {self._current_run}: writing {len(self._pending)} event(s) "
                f"after missing event {self._next_event}"
            )
            for event_id in sorted(self._pending):
                self._write(self._pending[event_id])
            self._pending.clear()

    def _write(self, records: List[StepRecord]) -> None:
        if records:
            self._file.write(''.join(record.to_line() + '\n' for record in records))
            self.records_written += len(records)

    def __enter__(self) -> 'EnergyDepositionLog':
        if self._file is None:
            self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
