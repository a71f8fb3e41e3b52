"""Celery retraction sweep task wiring."""
from unittest.mock import patch

from nightpass.core.errors import StoreUnavailable
from nightpass.workers.tasks.retractions import sweep_due_retractions


@patch("nightpass.workers.tasks.retractions.TelegramClient")
@patch("nightpass.workers.tasks.retractions.SessionLocal")
@patch("nightpass.workers.tasks.retractions.DeliveryScheduler")
def test_sweep_task_runs_scheduler(mock_scheduler, mock_session_local, mock_client):
    mock_scheduler.return_value.sweep_due.return_value = 4
    result = sweep_due_retractions()
    assert result == {"processed": 4}
    mock_session_local.return_value.close.assert_called_once()
    mock_client.return_value.close.assert_called_once()


@patch("nightpass.workers.tasks.retractions.TelegramClient")
@patch("nightpass.workers.tasks.retractions.SessionLocal")
@patch("nightpass.workers.tasks.retractions.DeliveryScheduler")
def test_sweep_task_store_down(mock_scheduler, mock_session_local, mock_client):
    mock_scheduler.return_value.sweep_due.side_effect = StoreUnavailable("down")
    result = sweep_due_retractions()
    assert result["processed"] == 0
    mock_session_local.return_value.close.assert_called_once()
