"""Tests for the CLI subcommand implementations."""

from __future__ import annotations

from collections import Counter
from datetime import datetime
from types import SimpleNamespace
from unittest.mock import MagicMock, patch
from zoneinfo import ZoneInfo

import pytest

from remindkit.config.settings import build_settings
from remindkit.core.types import RuleType
from remindkit.models import DeliveryRecord
from remindkit.services.engine import Outcome, RuleSummary, TickSummary

SP = ZoneInfo("America/Sao_Paulo")


def _config(**sections):
    data = {"database": {"database": "remindkit_test", "user": "testuser"}}
    data.update(sections)
    return SimpleNamespace(settings=build_settings(data), data={"_source": "test.yaml"})


class TestTick:
    def _container(self, result, errors=0):
        container = MagicMock()
        container.scheduler.run_task.return_value = result
        container.metrics.export.return_value = "# metrics\n"
        container.metrics.get.return_value = errors
        return container

    def test_prints_summary(self, capsys):
        from remindkit.cli.commands.tick import run_tick

        summary = TickSummary(
            task="appointment_reminders",
            started_at=datetime(2025, 8, 7, 8, 2, tzinfo=SP),
            rules=[RuleSummary("reminder_24h", candidates=2, outcomes=Counter({Outcome.SENT: 2}))],
        )
        container = self._container(summary)
        with (
            patch("remindkit.db.init_database"),
            patch("remindkit.app.build_container", return_value=container),
        ):
            run_tick(_config(), SimpleNamespace(task="appointment_reminders"))

        out = capsys.readouterr().out
        assert '"rule_type": "reminder_24h"' in out
        assert '"sent": 2' in out
        assert "# metrics" in out

    def test_exit_code_on_task_error(self):
        from remindkit.cli.commands.tick import run_tick

        container = self._container(None, errors=1)
        with (
            patch("remindkit.db.init_database"),
            patch("remindkit.app.build_container", return_value=container),
            pytest.raises(SystemExit) as exc_info,
        ):
            run_tick(_config(), SimpleNamespace(task="subscription_grace"))
        assert exc_info.value.code == 1

    def test_disabled_task(self, capsys):
        from remindkit.cli.commands.tick import run_tick

        container = self._container(None)
        container.scheduler.run_task.side_effect = KeyError("trial_reminders")
        with (
            patch("remindkit.db.init_database"),
            patch("remindkit.app.build_container", return_value=container),
            pytest.raises(SystemExit),
        ):
            run_tick(_config(), SimpleNamespace(task="trial_reminders"))
        assert "disabled" in capsys.readouterr().err


class TestInspect:
    def test_tasks_listing(self, capsys):
        from remindkit.cli.commands.inspect import run_tasks

        config = _config(scheduler={"tasks": {"trial_reminders": {"enabled": False}}})
        run_tasks(config, SimpleNamespace())
        out = capsys.readouterr().out
        assert "appointment_reminders" in out
        assert "*/5 * * * *" in out
        assert "trial_reminders" in out
        assert "disabled" in out

    def test_history(self, capsys):
        from remindkit.cli.commands.inspect import run_history

        record = DeliveryRecord(
            entity_id="t1:2025-08-10",
            rule_type=RuleType.PRE_EXPIRE_3D,
            sent_at=datetime(2025, 8, 7, 0, 5, tzinfo=SP),
        )
        with (
            patch("remindkit.db.init_database"),
            patch("remindkit.repositories.delivery.DeliveryRecordRepository") as repo_cls,
        ):
            repo_cls.return_value.find_for_entity.return_value = [record]
            run_history(_config(), SimpleNamespace(entity_id="t1:2025-08-10"))
        assert '"rule_type": "pre_expire_3d"' in capsys.readouterr().out

    def test_history_empty(self):
        from remindkit.cli.commands.inspect import run_history

        with (
            patch("remindkit.db.init_database"),
            patch("remindkit.repositories.delivery.DeliveryRecordRepository") as repo_cls,
            pytest.raises(SystemExit),
        ):
            repo_cls.return_value.find_for_entity.return_value = []
            run_history(_config(), SimpleNamespace(entity_id="nope"))


class TestDb:
    def test_status_reports_missing_tables(self, capsys):
        from remindkit.cli.commands.db import run_db

        db = MagicMock()
        db.fetch_all.return_value = [{"table_name": "tenants"}]
        with (
            patch("remindkit.db.init_database", return_value=db),
            pytest.raises(SystemExit),
        ):
            run_db(_config(), SimpleNamespace(db_command="status"))
        out = capsys.readouterr().out
        assert "tenants" in out
        assert "MISSING" in out

    def test_migrate(self, capsys):
        from remindkit.cli.commands.db import run_db

        with patch("remindkit.db.init_database") as init:
            run_db(_config(), SimpleNamespace(db_command="migrate"))
        assert init.call_args.kwargs["auto_setup"] is True
        assert "Schema applied" in capsys.readouterr().out


class TestRunDaemon:
    def test_wires_shutdown_and_starts_scheduler(self):
        from remindkit.cli.commands.run import run_daemon

        container = MagicMock()
        with (
            patch("remindkit.db.init_database"),
            patch("remindkit.app.build_container", return_value=container),
            patch("remindkit.app.shutdown.ShutdownCoordinator") as coordinator_cls,
        ):
            run_daemon(_config(), SimpleNamespace(debug=False))

        coordinator = coordinator_cls.return_value
        coordinator.on_shutdown.assert_called_once_with(container.scheduler.request_stop)
        coordinator.register_signals.assert_called_once()
        container.scheduler.start.assert_called_once()
        coordinator.wait.assert_called_once()
        container.scheduler.stop.assert_called_once()

    def test_database_failure_exits(self):
        from remindkit.cli.commands.run import run_daemon

        with (
            patch("remindkit.db.init_database", side_effect=RuntimeError("no db")),
            pytest.raises(SystemExit),
        ):
            run_daemon(_config(), SimpleNamespace(debug=False))
