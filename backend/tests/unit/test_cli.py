"""
Unit tests for the supplier-sync command line.

Tests cover:
- argument parsing for each subcommand
- create-job / status / history / cancel call the fetch job service
- domain errors exit with status 1

Version: 1.0.0
"""
import json
from unittest.mock import MagicMock, patch

import pytest

from supplier_sync import cli
from supplier_sync.core.exceptions import JobNotFoundError
from supplier_sync.services.fetch_job_service import to_progress


@pytest.fixture
def service():
    mock = MagicMock()
    with patch("supplier_sync.container.get_fetch_job_service", return_value=mock):
        yield mock


@pytest.mark.unit
class TestParser:

    def test_create_job_arguments(self):
        args = cli.build_parser().parse_args(["create-job", "--categories", "tire", "rim", "--max-retries", "3"])

        assert args.categories == ["tire", "rim"]
        assert args.max_retries == 3

    def test_rejects_unknown_category(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["create-job", "--categories", "wheel"])

    def test_status_job_id_optional(self):
        assert cli.build_parser().parse_args(["status"]).job_id is None
        assert cli.build_parser().parse_args(["status", "4"]).job_id == 4

    def test_command_required(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args([])


@pytest.mark.unit
class TestCommands:

    def test_create_job(self, service, make_job, capsys):
        service.create_job.return_value = make_job(id=12, categories=["rim"], total_categories=1)

        assert cli.main(["create-job", "--categories", "rim"]) == 0

        service.create_job.assert_called_once_with(categories=["rim"], triggered_by="manual", max_retries=None)
        assert json.loads(capsys.readouterr().out) == {"job_id": 12, "status": "pending", "categories": ["rim"]}

    def test_status_without_active_job(self, service, capsys):
        service.get_active_job.return_value = None

        assert cli.main(["status"]) == 0
        assert json.loads(capsys.readouterr().out) == {"active_job": None}

    def test_status_for_job(self, service, make_job, now, capsys):
        service.get_job_progress.return_value = to_progress(make_job(id=4, completed_categories=1), now)

        assert cli.main(["status", "4"]) == 0

        service.get_job_progress.assert_called_once_with(4)
        output = json.loads(capsys.readouterr().out)
        assert output["id"] == 4
        assert output["progress_percent"] == 33

    def test_history(self, service, make_job, now, capsys):
        service.get_job_history.return_value = [to_progress(make_job(id=2), now)]

        assert cli.main(["history", "--limit", "5"]) == 0

        service.get_job_history.assert_called_once_with(limit=5)
        assert [job["id"] for job in json.loads(capsys.readouterr().out)] == [2]

    def test_cancel_missing_job_exits_1(self, service):
        service.cancel_job.side_effect = JobNotFoundError(99)

        assert cli.main(["cancel", "99"]) == 1
