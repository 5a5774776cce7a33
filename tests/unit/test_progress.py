from __future__ import annotations

from unittest.mock import Mock, patch

from csv_importer.services.progress import RowProgressTracker, is_tty_enabled


def test_is_tty_enabled_returns_stdout_isatty():
    with patch('sys.stdout.isatty', return_value=True):
        assert is_tty_enabled() is True

    with patch('sys.stdout.isatty', return_value=False):
        assert is_tty_enabled() is False


class TestRowProgressTracker:
    def test_init_with_tty_enabled(self):
        with patch('csv_importer.services.progress.is_tty_enabled', return_value=True), \
             patch('csv_importer.services.progress.tqdm') as mock_tqdm:

            tracker = RowProgressTracker(5, description="Rows")

            assert tracker.total_rows == 5
            assert tracker.processed == 0
            assert tracker.enabled is True
            mock_tqdm.assert_called_once_with(
                total=5,
                desc="Rows",
                unit="row",
                disable=False,
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )

    def test_init_with_tty_disabled(self):
        with patch('csv_importer.services.progress.is_tty_enabled', return_value=False), \
             patch('csv_importer.services.progress.tqdm') as mock_tqdm:
            tracker = RowProgressTracker(5)

            assert tracker.enabled is False
            assert tracker.pbar is None
            mock_tqdm.assert_not_called()

    def test_advance_updates_bar_and_postfix(self):
        mock_pbar = Mock()
        with patch('csv_importer.services.progress.is_tty_enabled', return_value=True), \
             patch('csv_importer.services.progress.tqdm', return_value=mock_pbar):

            tracker = RowProgressTracker(3)
            tracker.advance(status="created")
            tracker.advance()

            assert tracker.processed == 2
            assert mock_pbar.update.call_count == 2
            mock_pbar.set_postfix.assert_called_once_with(status="created")

    def test_advance_with_tty_disabled(self):
        with patch('csv_importer.services.progress.is_tty_enabled', return_value=False):
            tracker = RowProgressTracker(3)
            tracker.advance(status="created")

            assert tracker.processed == 1

    def test_context_manager_closes(self):
        mock_pbar = Mock()
        with patch('csv_importer.services.progress.is_tty_enabled', return_value=True), \
             patch('csv_importer.services.progress.tqdm', return_value=mock_pbar):

            with RowProgressTracker(3) as tracker:
                assert isinstance(tracker, RowProgressTracker)

            mock_pbar.close.assert_called_once()
            assert tracker.pbar is None
