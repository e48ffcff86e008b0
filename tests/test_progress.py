"""Tests for progress reporting."""

import io

from doc_index.progress import TqdmProgress, report


def test_report_without_callback():
    """Test a missing callback is a no-op."""
    report(None, 1, 2, "processing")


def test_report_calls_callback():
    """Test arguments are passed through unchanged."""
    events = []
    report(lambda *args: events.append(args), 3, 10, "saving")
    assert events == [(3, 10, "saving")]


def test_tqdm_progress_tracks_stages():
    """Test one bar per stage and closing on completion."""
    output = io.StringIO()
    progress = TqdmProgress(file=output)

    progress(10, 25, "processing")
    progress(20, 25, "processing")
    assert progress.positions["processing"] == 20
    assert "processing" in progress._bars

    progress(25, 25, "processing")
    assert "processing" not in progress._bars
    assert "Processing embeddings" in output.getvalue()


def test_tqdm_progress_never_moves_backwards():
    """Test a lower count than already shown is ignored."""
    progress = TqdmProgress(file=io.StringIO())

    progress(5, 10, "saving")
    progress(3, 10, "saving")

    assert progress.positions["saving"] == 5
    assert progress._bars["saving"].n == 5
    progress.close()
    assert progress._bars == {}


def test_tqdm_progress_context_manager():
    """Test bars left open are closed on exit."""
    with TqdmProgress(file=io.StringIO()) as progress:
        progress(0, 2, "generating")
        progress(0, 1, "searching")
    assert progress._bars == {}
