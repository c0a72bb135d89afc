"""Render mermaid diagrams to PNG with the mermaid CLI.

:class:`MermaidRenderer` writes the diagram source into the conversion's
scratch directory and runs::

    mmdc -i <n>.mmd -o <n>.png -t <theme> -b <background> [-w W -H H] -q

Every failure (missing executable, non-zero exit, timeout, no output) is
raised as :class:`LarkifyRenderError`; the walker turns it into a plain
code block.
"""

from __future__ import annotations

import itertools
import shutil
import subprocess
from pathlib import Path

from larkify.config import DiagramOptions
from larkify.errors import LarkifyRenderError
from larkify.observability import get_logger

log = get_logger("larkify.diagram")

DEFAULT_VIEWPORT = (800, 600)

_STDERR_LIMIT = 1000


class MermaidRenderer:
    """Run the mermaid CLI once per diagram.

    Renders are numbered per renderer instance, so one instance must not
    share a work directory with another.
    """

    def __init__(self) -> None:
        self._counter = itertools.count(1)

    def build_command(
        self,
        executable: str,
        input_path: Path,
        output_path: Path,
        options: DiagramOptions,
    ) -> list[str]:
        cmd = [
            executable,
            "-i", str(input_path),
            "-o", str(output_path),
            "-t", options.theme,
            "-b", options.background_color,
        ]
        if options.width or options.height:
            cmd += [
                "-w", str(options.width or DEFAULT_VIEWPORT[0]),
                "-H", str(options.height or DEFAULT_VIEWPORT[1]),
            ]
        cmd.append("-q")
        return cmd

    def render(self, source: str, options: DiagramOptions, work_dir: str) -> bytes:
        """Render *source* and return the PNG bytes.

        Parameters
        ----------
        source:
            Mermaid diagram source.
        options:
            Theme, background, viewport and executable settings.
        work_dir:
            Existing scratch directory owned by the current conversion.

        Raises
        ------
        LarkifyRenderError
            If the renderer is unavailable, fails, times out, or produces
            no output.
        """
        executable = shutil.which(options.command)
        if executable is None:
            raise LarkifyRenderError(
                message=f"Diagram renderer {options.command!r} is not installed or not on PATH",
                context={"command": options.command},
            )

        n = next(self._counter)
        input_path = Path(work_dir) / f"mermaid_{n}.mmd"
        output_path = Path(work_dir) / f"mermaid_{n}.png"
        input_path.write_text(source, encoding="utf-8")
        cmd = self.build_command(executable, input_path, output_path, options)

        try:
            proc = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                check=False,
                timeout=options.timeout_seconds,
            )
        except subprocess.TimeoutExpired as exc:
            raise LarkifyRenderError(
                message=f"Diagram rendering timed out after {options.timeout_seconds}s",
                context={"command": options.command},
                cause=exc,
            ) from exc
        except OSError as exc:
            raise LarkifyRenderError(
                message=f"Failed to run diagram renderer: {exc}",
                context={"command": options.command},
                cause=exc,
            ) from exc

        if proc.returncode != 0:
            raise LarkifyRenderError(
                message=f"Diagram renderer exited with status {proc.returncode}",
                context={
                    "command": options.command,
                    "returncode": proc.returncode,
                    "stderr": (proc.stderr or "")[-_STDERR_LIMIT:],
                },
            )
        if not output_path.is_file():
            raise LarkifyRenderError(
                message="Diagram renderer produced no output",
                context={"command": options.command, "output": str(output_path)},
            )

        data = output_path.read_bytes()
        log.debug(
            "Rendered diagram",
            extra={"extra_fields": {"op": "render", "output": output_path.name, "bytes": len(data)}},
        )
        return data
