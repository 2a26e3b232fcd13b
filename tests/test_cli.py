"""Tests for the agentpm command line."""

import json
import sys
import xml.etree.ElementTree as ET

import pytest

from agentpm.cli import main
from agentpm.model.storage import load_epic, save_epic
from agentpm.workflow.status import Status, TestState

TIME = "2025-01-15T10:00:00Z"


def run(epic_file, *argv):
    return main(["--file", str(epic_file), "--time", TIME, *argv])


class TestTransitions:
    """start / done / cancel / pause / resume."""

    def test_start_task(self, epic_file, capsys):
        assert run(epic_file, "start", "task", "1A_1") == 0
        out = capsys.readouterr().out
        assert "Task 1A_1: pending -> wip" in out
        assert "Next: Continue work on: Setup" in out

        task = load_epic(epic_file).find_task("1A_1")
        assert task.status == Status.WIP
        assert task.assignee == "agent"
        assert task.started_at.isoformat() == "2025-01-15T10:00:00+00:00"

    def test_bare_id_and_trailing_global_flags(self, epic_file):
        assert main(["start", "1A_1", "--file", str(epic_file), "-t", TIME]) == 0
        assert load_epic(epic_file).find_task("1A_1").status == Status.WIP

    def test_already_in_target(self, epic_file, capsys):
        before = epic_file.read_bytes()
        assert run(epic_file, "start", "phase", "1A") == 0
        assert "Phase 1A is already wip; nothing to do." in capsys.readouterr().out
        assert epic_file.read_bytes() == before

    def test_rejected_transition(self, epic_file, capsys):
        before = epic_file.read_bytes()
        assert run(epic_file, "start", "task", "1B_1") == 1
        err = capsys.readouterr().err
        assert "ERROR: task 1B_1 belongs to phase 1B, but active phase is 1A" in err
        assert "Hint:" in err
        assert epic_file.read_bytes() == before

    def test_rejected_transition_json(self, epic_file, capsys):
        assert run(epic_file, "-F", "json", "start", "task", "1B_1") == 1
        data = json.loads(capsys.readouterr().out)
        assert data["error"]["kind"] == "precondition_failed"
        assert data["error"]["predicate"] == "phase_not_active"
        assert data["hint"]["command"] == "agentpm done phase 1A"

    def test_done_epic_gate(self, epic_file, capsys):
        assert run(epic_file, "done", "epic") == 1
        assert "phases not done: 1A, 1B" in capsys.readouterr().err

    def test_cancel_task_with_reason(self, epic_file):
        assert run(epic_file, "cancel", "1A_2", "no", "longer", "needed") == 0
        epic = load_epic(epic_file)
        assert epic.find_task("1A_2").status == Status.CANCELLED
        assert epic.events[-1].data == "Task 1A_2 (Models) cancelled: no longer needed"

    def test_pause_and_resume(self, epic_file):
        assert run(epic_file, "pause") == 0
        assert load_epic(epic_file).is_paused
        assert run(epic_file, "resume") == 0
        assert load_epic(epic_file).status == Status.WIP

    def test_start_next(self, epic_file, capsys):
        assert run(epic_file, "start", "next") == 0
        assert "Started task 1A_1 in phase 1A" in capsys.readouterr().out
        assert load_epic(epic_file).current_state.active_task == "1A_1"

    def test_kind_without_id(self, epic_file, capsys):
        assert run(epic_file, "start", "task") == 3
        assert "requires an ID" in capsys.readouterr().err


class TestTestCommands:
    """pass-test / fail-test / cancel-test / batch-test."""

    def test_pass_several(self, epic_file):
        assert run(epic_file, "pass-test", "1A_T1", "1A_T2") == 0
        epic = load_epic(epic_file)
        assert epic.find_test("1A_T1").state == TestState.PASSING
        assert epic.find_test("1A_T2").state == TestState.PASSING

    def test_fail_with_note(self, epic_file):
        assert run(epic_file, "fail-test", "1A_T1", "timeout") == 0
        test = load_epic(epic_file).find_test("1A_T1")
        assert test.state == TestState.FAILING
        assert test.failure_note == "timeout"

    def test_cancel_without_reason(self, epic_file, capsys):
        assert run(epic_file, "cancel-test", "1A_T1") == 1
        assert "cancellation reason is required" in capsys.readouterr().err

    def test_batch_all_or_nothing(self, epic_file, capsys):
        before = epic_file.read_bytes()
        assert run(epic_file, "batch-test", "1A_T1:pass", "1B_T1:pass") == 1
        err = capsys.readouterr().err
        assert "1 of 2 operations are invalid" in err
        assert epic_file.read_bytes() == before

    def test_batch_from_input_file(self, epic_file, tmp_path):
        ops = tmp_path / "ops.json"
        ops.write_text(json.dumps([
            {"test_id": "1A_T1", "verb": "pass"},
            {"test_id": "1A_T2", "verb": "cancel", "reason": "duplicate"},
        ]))
        assert run(epic_file, "batch-test", "--input", str(ops)) == 0
        epic = load_epic(epic_file)
        assert epic.find_test("1A_T2").cancellation_reason == "duplicate"

    def test_batch_input_schema_violation(self, epic_file, tmp_path, capsys):
        ops = tmp_path / "ops.json"
        ops.write_text(json.dumps([{"test_id": "1A_T1"}]))
        assert run(epic_file, "batch-test", "--input", str(ops)) == 3
        assert "'verb' is a required property" in capsys.readouterr().err

    def test_batch_dry_run(self, epic_file, capsys):
        before = epic_file.read_bytes()
        assert run(epic_file, "batch-test", "--dry-run", "1A_T1:pass") == 0
        assert "1 of 1 operations are valid" in capsys.readouterr().out
        assert epic_file.read_bytes() == before

    def test_batch_dry_run_matches_real_run(self, epic_file, capsys):
        ops = ["1A_T1:pass", "1A_T1:cancel:duplicate"]
        assert run(epic_file, "batch-test", "--dry-run", *ops) == 1
        assert "1 of 2 operations are invalid" in capsys.readouterr().out
        assert run(epic_file, "batch-test", *ops) == 1
        assert "1 of 2 operations are invalid" in capsys.readouterr().err

    def test_batch_without_operations(self, epic_file, capsys):
        assert run(epic_file, "batch-test") == 3
        assert "no operations provided" in capsys.readouterr().err


class TestQueries:
    """Read-only commands."""

    def test_status_text(self, epic_file, capsys):
        assert run(epic_file, "status") == 0
        out = capsys.readouterr().out
        assert "Epic: 8 - Authentication" in out
        assert "[>] 1A: Foundation (0/2 tasks)" in out

    def test_status_xml(self, epic_file, capsys):
        assert run(epic_file, "--format", "xml", "status") == 0
        root = ET.fromstring(capsys.readouterr().out)
        assert root.tag == "status"
        assert [p.findtext("id") for p in root.findall("phases/phase")] == ["1A", "1B"]

    def test_current_json(self, epic_file, capsys):
        assert run(epic_file, "-F", "json", "current") == 0
        data = json.loads(capsys.readouterr().out)
        assert data["active_phase"]["id"] == "1A"
        assert data["next_action"] == "Start next task: Setup"

    def test_log_and_events(self, epic_file, capsys):
        assert run(epic_file, "log", "Decided on JWT", "--type", "decision", "--files", "docs/auth.md:added") == 0
        assert run(epic_file, "events", "--limit", "5") == 0
        out = capsys.readouterr().out
        assert "[D] Decided on JWT [files: docs/auth.md:added]" in out

    def test_events_colored_on_terminal(self, epic_file, capsys, monkeypatch):
        assert run(epic_file, "start", "task", "1A_1") == 0
        capsys.readouterr()
        monkeypatch.setattr(sys.stdout, "isatty", lambda: True)
        assert run(epic_file, "events") == 0
        assert "\033[" in capsys.readouterr().out

    def test_events_no_color(self, epic_file, capsys, monkeypatch):
        assert run(epic_file, "start", "task", "1A_1") == 0
        capsys.readouterr()
        monkeypatch.setattr(sys.stdout, "isatty", lambda: True)
        assert run(epic_file, "events", "--no-color") == 0
        out = capsys.readouterr().out
        assert "\033[" not in out
        assert "[>] Task 1A_1 (Setup) started" in out

    def test_show_full(self, epic_file, capsys):
        assert run(epic_file, "show", "1A_1", "--full") == 0
        out = capsys.readouterr().out
        assert "Task: 1A_1 - Setup" in out
        assert "Siblings (1):" in out

    def test_show_unknown(self, epic_file, capsys):
        assert run(epic_file, "show", "task", "1A_7") == 1
        assert "did you mean" in capsys.readouterr().err

    def test_validate(self, epic_file, capsys):
        assert run(epic_file, "validate") == 0
        assert "Epic is valid." in capsys.readouterr().out


class TestConfigAndUsage:
    """Config resolution, init and exit codes."""

    def test_init_then_use_config(self, epic_file, tmp_path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_path)
        assert main(["init", "--epic", epic_file.name, "--assignee", "bot"]) == 0
        config = json.loads((tmp_path / ".agentpm.json").read_text())
        assert config == {"current_epic": "epic-8.xml", "default_assignee": "bot"}

        assert main(["--time", TIME, "start", "task", "1A_1"]) == 0
        assert load_epic(epic_file).find_task("1A_1").assignee == "bot"

    def test_init_missing_epic(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert main(["init", "--epic", "nope.xml"]) == 2
        assert not (tmp_path / ".agentpm.json").exists()

    def test_missing_config(self, tmp_path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_path)
        assert main(["status"]) == 2
        assert "Config file not found" in capsys.readouterr().err

    def test_unroutable_id(self, epic_file, capsys):
        assert run(epic_file, "start", "foo") == 3
        assert "Cannot determine entity type for 'foo'" in capsys.readouterr().err

    def test_bad_time(self, epic_file):
        assert main(["--file", str(epic_file), "--time", "yesterday", "status"]) == 3

    def test_missing_command_exits_3(self):
        with pytest.raises(SystemExit) as exc_info:
            main([])
        assert exc_info.value.code == 3

    def test_unknown_option_exits_3(self, epic_file):
        with pytest.raises(SystemExit) as exc_info:
            run(epic_file, "status", "--bogus")
        assert exc_info.value.code == 3


class TestConfigCommands:
    """config and switch."""

    @pytest.fixture
    def project(self, epic, epic_file, tmp_path, monkeypatch):
        """Initialized project with a second epic, epic-9.xml, next to epic-8.xml."""
        monkeypatch.chdir(tmp_path)
        epic.id = "9"
        epic.name = "Billing"
        save_epic(epic, tmp_path / "epic-9.xml")
        assert main(["init", "--epic", epic_file.name]) == 0
        return tmp_path

    def _config(self, project):
        return json.loads((project / ".agentpm.json").read_text())

    def test_config_text(self, project, capsys):
        capsys.readouterr()
        assert main(["config"]) == 0
        out = capsys.readouterr().out
        assert "Current epic:     epic-8.xml" in out
        assert "Default assignee: agent" in out
        assert "WARNING" not in out

    def test_config_json_warns_on_missing_epic(self, project, capsys):
        (project / "epic-8.xml").unlink()
        capsys.readouterr()
        assert main(["-F", "json", "config"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["current_epic"] == "epic-8.xml"
        assert data["hints"]["min_priority"] == "low"
        assert data["warnings"] == [f"Epic file not found: {project / 'epic-8.xml'}"]

    def test_switch_and_back(self, project, capsys):
        assert main(["switch", "epic-9.xml"]) == 0
        assert "Switched from epic-8.xml to epic-9.xml" in capsys.readouterr().out
        assert self._config(project)["current_epic"] == "epic-9.xml"
        assert self._config(project)["previous_epic"] == "epic-8.xml"

        assert main(["-F", "json", "status"]) == 0
        assert json.loads(capsys.readouterr().out)["epic"]["name"] == "Billing"

        assert main(["switch", "--back"]) == 0
        assert "Switched back from epic-9.xml to epic-8.xml" in capsys.readouterr().out
        assert self._config(project)["current_epic"] == "epic-8.xml"
        assert self._config(project)["previous_epic"] == "epic-9.xml"

    def test_switch_back_without_previous(self, project, capsys):
        assert main(["switch", "--back"]) == 2
        assert "No previous epic" in capsys.readouterr().err

    def test_switch_to_missing_epic_keeps_config(self, project):
        before = self._config(project)
        assert main(["switch", "epic-10.xml"]) == 2
        assert self._config(project) == before

    def test_switch_needs_a_target(self, project):
        assert main(["switch"]) == 3


class TestQueryCommand:
    """query with a path expression."""

    def test_text(self, epic_file, capsys):
        assert run(epic_file, "query", "//task[@phase_id='1A']") == 0
        lines = capsys.readouterr().out.splitlines()
        assert lines[0].startswith('task id="1A_1" phase_id="1A" name="Setup"')
        assert len(lines) == 2

    def test_json(self, epic_file, capsys):
        assert run(epic_file, "-F", "json", "query", "//phase[@status='wip']") == 0
        data = json.loads(capsys.readouterr().out)
        assert data["match_count"] == 1
        assert data["matches"][0]["attributes"]["id"] == "1A"

    def test_xml(self, epic_file, capsys):
        assert run(epic_file, "-F", "xml", "query", "//test") == 0
        root = ET.fromstring(capsys.readouterr().out)
        assert root.get("match_count") == "3"
        assert [t.get("id") for t in root.findall("test")] == ["1A_T1", "1A_T2", "1B_T1"]

    def test_no_match(self, epic_file, capsys):
        assert run(epic_file, "query", "//task[@status='done']") == 0
        assert "No elements match" in capsys.readouterr().out

    def test_invalid_expression(self, epic_file, capsys):
        assert run(epic_file, "query", "//task[@status='done'") == 3
        err = capsys.readouterr().err
        assert "unbalanced brackets" in err
