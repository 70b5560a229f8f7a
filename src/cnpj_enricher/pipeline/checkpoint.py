"""
Checkpoint persistence for resumable runs.

The checkpoint is a text file holding the last CNPJ whose record was produced.
On restart the run continues right after that CNPJ in the input list.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Sequence

logger = logging.getLogger(__name__)


class CheckpointStore:
    """
    Reads and writes the last processed CNPJ.

    Parameters:
        path: Checkpoint file location
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def load(self) -> str | None:
        """
        Return the stored CNPJ, or None if there is no usable checkpoint.

        Unreadable files are treated as "no checkpoint" so the run starts over
        instead of failing.
        """
        if not self.path.exists():
            return None
        try:
            value = self.path.read_text(encoding="utf-8").strip()
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(
                "checkpoint_read_failed",
                extra={"path": str(self.path), "error": str(e)},
            )
            return None
        return value or None

    def save(self, cnpj: str) -> bool:
        """
        Overwrite the checkpoint with `cnpj`.

        Returns:
            False if the file could not be written; the caller keeps going
            with a weaker resume guarantee
        """
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(cnpj, encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.warning(
                "checkpoint_save_failed",
                extra={"path": str(self.path), "cnpj": cnpj, "error": str(e)},
            )
            return False
        return True

    def clear(self) -> bool:
        """Delete the checkpoint; returns True if a file was removed."""
        try:
            self.path.unlink()
        except FileNotFoundError:
            return False
        return True


def resume_index(identifiers: Sequence[str], checkpoint: str | None) -> int:
    """
    Position of the first CNPJ still to process.

    Parameters:
        identifiers: Full normalized input list
        checkpoint: Last processed CNPJ, if any

    Returns:
        Index right after the first occurrence of `checkpoint`, or 0 when there
        is no checkpoint or it is not in the list

    Example:
        >>> resume_index(["a", "b", "c"], "b")
        2
        >>> resume_index(["a", "b", "c"], "z")
        0
    """
    if not checkpoint:
        return 0
    for i, cnpj in enumerate(identifiers):
        if cnpj == checkpoint:
            return i + 1
    return 0
