"""Progress reporting for long-running embedding and search operations."""

from __future__ import annotations

from typing import IO, Any, Callable, Dict, Optional

from tqdm import tqdm


ProgressCallback = Callable[[int, int, str], Any]

STAGE_DESCRIPTIONS = {
    "processing": "Processing embeddings",
    "saving": "Saving embeddings",
    "generating": "Generating query embedding",
    "searching": "Searching",
}


def report(callback: Optional[ProgressCallback], processed: int, total: int, stage: str) -> None:
    """Invoke a progress callback if one was given."""
    if callback is not None:
        callback(processed, total, stage)


class TqdmProgress:
    """
    Progress callback that renders one tqdm bar per stage.

    Usage:
        with TqdmProgress() as progress:
            generate_embeddings(..., progress_callback=progress)
    """

    def __init__(self, disable: bool = False, leave: bool = True, file: Optional[IO[str]] = None) -> None:
        self.disable = disable
        self.leave = leave
        self.file = file
        self.positions: Dict[str, int] = {}
        self._bars: Dict[str, tqdm] = {}

    def __call__(self, processed: int, total: int, stage: str) -> None:
        bar = self._bars.get(stage)
        last = self.positions.get(stage, 0)
        if bar is None:
            last = 0
            bar = tqdm(
                total=total,
                desc=STAGE_DESCRIPTIONS.get(stage, stage),
                disable=self.disable,
                leave=self.leave,
                file=self.file,
            )
            self._bars[stage] = bar
        if bar.total != total:
            bar.total = total

        # Counts never move backwards
        if processed > last:
            bar.update(processed - last)
        self.positions[stage] = max(processed, last)

        if total and processed >= total:
            bar.close()
            del self._bars[stage]

    def close(self) -> None:
        for bar in self._bars.values():
            bar.close()
        self._bars.clear()

    def __enter__(self) -> "TqdmProgress":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
