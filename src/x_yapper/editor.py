"""Find the user's editor and run it on a temporary file."""

from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
import tempfile
from dataclasses import dataclass, field
from datetime import datetime

logger = logging.getLogger(__name__)

FALLBACK_EDITORS = ("nvim", "vim", "nano", "emacs", "notepad")


class EditorError(RuntimeError):
    pass


@dataclass(frozen=True)
class Editor:
    path: str
    name: str
    args: tuple[str, ...] = field(default=())

    def edit(self, initial: str = "") -> str:
        """Open the editor on a fresh temp file and return what the user saved.

        Trailing whitespace is stripped; the temp file is always removed.
        """
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        fd, tmp_name = tempfile.mkstemp(prefix=f"posteditor_{timestamp}_", suffix=".txt")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(initial)

            logger.debug("Launching %s on %s", self.name, tmp_name)
            try:
                result = subprocess.run([self.path, *self.args, tmp_name], check=False)
            except OSError as exc:
                raise EditorError(f"failed to run editor {self.name}: {exc}") from exc
            if result.returncode != 0:
                raise EditorError(
                    f"editor {self.name} exited with status {result.returncode}",
                )

            with open(tmp_name, encoding="utf-8") as f:
                return f.read().rstrip()
        finally:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass


def choose_editor(
    env_editor: str | None = None,
    candidates: tuple[str, ...] = FALLBACK_EDITORS,
) -> Editor:
    """Resolve ``$EDITOR`` (may carry arguments) or the first available fallback."""
    if env_editor:
        command = shlex.split(env_editor)
        if command:
            path = shutil.which(command[0])
            if path:
                return Editor(path=path, name=command[0], args=tuple(command[1:]))
            logger.warning("EDITOR=%s not found on PATH, trying fallbacks", env_editor)

    for name in candidates:
        path = shutil.which(name)
        if path:
            return Editor(path=path, name=name)

    raise EditorError(
        f"no suitable editor found (set EDITOR or install one of: {', '.join(candidates)})",
    )
