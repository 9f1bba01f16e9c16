from __future__ import annotations

from unittest.mock import patch

from sheetload.services.progress import TableProgress, is_tty_enabled


def test_is_tty_enabled_returns_stdout_isatty():
    with patch("sys.stdout.isatty", return_value=True):
        assert is_tty_enabled() is True
    with patch("sys.stdout.isatty", return_value=False):
        assert is_tty_enabled() is False


def test_no_bar_without_tty():
    with patch("sheetload.services.progress.is_tty_enabled", return_value=False), patch(
        "sheetload.services.progress.tqdm"
    ) as mock_tqdm:
        with TableProgress(3, "inventory") as progress:
            progress.start_table("products")
            progress.finish_table(rows=1)
        mock_tqdm.assert_not_called()


def test_bar_advances_per_table():
    with patch("sheetload.services.progress.is_tty_enabled", return_value=True), patch(
        "sheetload.services.progress.tqdm"
    ) as mock_tqdm:
        bar = mock_tqdm.return_value
        with TableProgress(2, "inventory") as progress:
            progress.start_table("products")
            bar.set_description.assert_called_with("inventory (products)")
            progress.finish_table(rows=10, failed=0)
        mock_tqdm.assert_called_once()
        assert mock_tqdm.call_args.kwargs["total"] == 2
        assert mock_tqdm.call_args.kwargs["unit"] == "table"
        bar.update.assert_called_once_with(1)
        bar.set_postfix.assert_called_once_with(rows=10, failed=0)
        bar.close.assert_called_once()
