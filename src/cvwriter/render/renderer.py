"""
Rendering of resume text into a document.

The default renderer runs an external program (pandoc unless configured
otherwise) as `<program> <input.md> -o <output.pdf>` in a scratch directory
and returns the bytes of the output file.
"""

from __future__ import annotations

import abc as _abc
import asyncio as _asyncio
import logging as _logging
import pathlib as _pathlib
import shlex as _shlex
import tempfile as _tempfile

import cvwriter.constants as _constants
import cvwriter.errors as errors

_logger = _logging.getLogger(__name__)


class Renderer(_abc.ABC):
    """Turns resume text into document bytes."""

    @_abc.abstractmethod
    async def render(self, text: str) -> bytes:
        """
        Render `text`.

        Raises:
            RenderError: If no document could be produced.
        """
        ...


class CommandRenderer(Renderer):
    """
    Renders by running an external program in a subprocess.

    `program` may carry extra arguments (e.g. "pandoc --pdf-engine=xelatex");
    it is split with shell rules but never run through a shell.
    """

    def __init__(
        self,
        program: str = _constants.DEFAULT_RENDER_PROGRAM,
        *,
        timeout: float = _constants.DEFAULT_RENDER_TIMEOUT,
        suffix: str = _constants.ARTIFACT_SUFFIX,
    ) -> None:
        self._argv = _shlex.split(program)
        if not self._argv:
            raise ValueError("Render program must not be empty")
        self._timeout = timeout
        self._suffix = suffix

    @property
    def program(self) -> str:
        return self._argv[0]

    async def render(self, text: str) -> bytes:
        with _tempfile.TemporaryDirectory(prefix="cvwriter-render-") as tmp:
            workdir = _pathlib.Path(tmp)
            source = workdir / "resume.md"
            target = workdir / f"resume{self._suffix}"
            source.write_text(text, encoding="utf-8")

            argv = [*self._argv, str(source), "-o", str(target)]
            _logger.debug("Rendering resume: %s", " ".join(argv))

            try:
                proc = await _asyncio.create_subprocess_exec(
                    *argv,
                    stdout=_asyncio.subprocess.PIPE,
                    stderr=_asyncio.subprocess.PIPE,
                    cwd=str(workdir),
                )
            except OSError as e:
                raise errors.RenderError(f"Cannot run {self.program}: {e}") from e

            try:
                _, stderr = await _asyncio.wait_for(proc.communicate(), timeout=self._timeout)
            except TimeoutError as e:
                proc.kill()
                await proc.wait()
                raise errors.RenderError(
                    f"{self.program} timed out after {self._timeout:g}s"
                ) from e

            if proc.returncode != 0:
                detail = stderr.decode("utf-8", errors="replace").strip()
                raise errors.RenderError(
                    f"{self.program} exited with status {proc.returncode}: {detail[:500]}"
                )

            try:
                return target.read_bytes()
            except OSError as e:
                raise errors.RenderError(f"{self.program} produced no output: {e}") from e
