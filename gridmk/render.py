"""Running OpenSCAD on emitted descriptions to produce meshes."""

import logging
import shutil
import subprocess
import tempfile
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Union

from .config import RenderSettings
from .errors import ConfigError, RenderError, RenderFailureError, RenderTimeoutError
from .geometry import EmittedDescription, render_to_file

logger = logging.getLogger(__name__)

STDERR_EXCERPT_CHARS = 2000


@dataclass(frozen=True)
class RenderOutcome:
    """Result of rendering one description: a mesh path or the error that stopped it."""

    key: str
    artifact_name: str
    mesh_path: Optional[str] = None
    error: Optional[RenderError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _decode(output) -> str:
    if output is None:
        return ""
    if isinstance(output, bytes):
        output = output.decode("utf-8", errors="replace")
    return output[-STDERR_EXCERPT_CHARS:]


class OpenSCADRenderer:
    """
    Invokes the OpenSCAD binary once per description.

    Each render works in its own temporary directory, which is removed on
    every exit path. Failures are never retried.
    """

    def __init__(
        self,
        binary: str = "openscad",
        timeout_s: float = 120.0,
        max_workers: int = 2,
        output_format: str = "stl",
    ):
        RenderSettings(binary, timeout_s, max_workers, output_format).validate()
        self.binary = binary
        self.timeout_s = timeout_s
        self.max_workers = max_workers
        self.output_format = output_format

    @classmethod
    def from_settings(cls, settings: RenderSettings) -> "OpenSCADRenderer":
        return cls(settings.openscad_binary, settings.timeout_s, settings.max_workers, settings.output_format)

    def render(self, description: EmittedDescription, out_dir: Union[str, Path]) -> RenderOutcome:
        """
        Render one description into ``out_dir``.

        Raises:
            RenderTimeoutError: If OpenSCAD runs past the timeout
            RenderFailureError: If OpenSCAD is missing, exits non-zero or writes no mesh
        """
        out = Path(out_dir)
        out.mkdir(parents=True, exist_ok=True)
        name = description.artifact_name
        key = description.key

        with tempfile.TemporaryDirectory(prefix="gridmk-") as tmp:
            scad_path = Path(tmp) / f"{name}.scad"
            mesh_path = Path(tmp) / f"{name}.{self.output_format}"
            render_to_file(description, str(scad_path))
            logger.info("rendering %s with %s", name, self.binary)
            try:
                result = subprocess.run(
                    [self.binary, "-o", str(mesh_path), str(scad_path)],
                    capture_output=True,
                    text=True,
                    timeout=self.timeout_s,
                )
            except FileNotFoundError:
                raise RenderFailureError(f"OpenSCAD executable not found: {self.binary}", key=key) from None
            except subprocess.TimeoutExpired as e:
                raise RenderTimeoutError(
                    f"OpenSCAD timed out after {self.timeout_s}s on {name}", key=key, stderr=_decode(e.stderr)
                ) from None

            if result.returncode != 0:
                raise RenderFailureError(
                    f"OpenSCAD exited with status {result.returncode} on {name}",
                    key=key,
                    stderr=_decode(result.stderr),
                )
            if not mesh_path.exists():
                raise RenderFailureError(f"OpenSCAD wrote no mesh for {name}", key=key, stderr=_decode(result.stderr))
            target = out / mesh_path.name
            shutil.move(str(mesh_path), str(target))

        logger.info("wrote %s", target)
        return RenderOutcome(key=key, artifact_name=name, mesh_path=str(target))

    def _render_recorded(self, description: EmittedDescription, out_dir: Union[str, Path]) -> RenderOutcome:
        try:
            return self.render(description, out_dir)
        except RenderError as e:
            logger.warning("render of %s failed: %s", description.artifact_name, e)
            return RenderOutcome(key=description.key, artifact_name=description.artifact_name, error=e)

    def render_many(
        self, descriptions: Sequence[EmittedDescription], out_dir: Union[str, Path]
    ) -> List[RenderOutcome]:
        """
        Render descriptions concurrently, up to ``max_workers`` at a time.

        A failed render is recorded on its own outcome and does not stop the
        others. Outcomes come back in input order.
        """
        if not descriptions:
            return []
        keys = [d.artifact_name for d in descriptions]
        if len(set(keys)) != len(keys):
            raise ConfigError("descriptions rendered together must have distinct artifact names")
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            futures = [pool.submit(self._render_recorded, d, out_dir) for d in descriptions]
            return [f.result() for f in futures]
