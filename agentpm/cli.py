#!/usr/bin/env python3
"""agentpm CLI entrypoint."""

import argparse
import logging
import sys

from agentpm import __version__
from agentpm.errors import AgentPMError
from agentpm.hints.generator import HintConfig, context_from_error, generate_hint
from agentpm.lib.constants import (
    DEFAULT_CONFIG_PATH,
    DEFAULT_EVENT_LIMIT,
    DEFAULT_LOG_EVENT_TYPE,
    LOG_EVENT_TYPES,
    OUTPUT_FORMATS,
)
from agentpm.lib.output import emit_error
from agentpm.lib.session import Session
from agentpm.commands import config as cmd_config_module
from agentpm.commands import init as cmd_init_module
from agentpm.commands import log as cmd_log_module
from agentpm.commands import query as cmd_query_module
from agentpm.commands import show as cmd_show_module
from agentpm.commands import tests as cmd_tests_module
from agentpm.commands import transition as cmd_transition_module
from agentpm.commands import validate as cmd_validate_module
from agentpm.commands import xpath as cmd_xpath_module

logger = logging.getLogger(__name__)

EXIT_USAGE = 3


class ArgumentParser(argparse.ArgumentParser):
    """argparse with the usage-error exit code agentpm documents (3, not 2)."""

    def error(self, message):
        self.print_usage(sys.stderr)
        print(f"{self.prog}: error: {message}", file=sys.stderr)
        sys.exit(EXIT_USAGE)


def _add_global_flags(parser: argparse.ArgumentParser, suppress: bool) -> None:
    """Global flags, accepted before or after the subcommand.

    Subcommand copies use SUPPRESS so they only override values actually given.
    """
    def default(value):
        return argparse.SUPPRESS if suppress else value

    parser.add_argument("--file", "-f", default=default(None), help="Epic XML file (overrides config)")
    parser.add_argument("--config", "-c", default=default(DEFAULT_CONFIG_PATH),
                        help=f"Config file (default: {DEFAULT_CONFIG_PATH})")
    parser.add_argument("--time", "-t", default=default(None), help="Timestamp override, RFC3339")
    parser.add_argument("--format", "-F", choices=OUTPUT_FORMATS, default=default("text"), help="Output format")
    parser.add_argument("--verbose", "-v", action="store_true", default=default(False), help="Debug logging")


def build_parser() -> argparse.ArgumentParser:
    parser = ArgumentParser(prog="agentpm", description="Project tracking for autonomous coding agents")
    parser.add_argument("--version", action="version", version=f"agentpm {__version__}")
    _add_global_flags(parser, suppress=False)

    common = argparse.ArgumentParser(add_help=False)
    _add_global_flags(common, suppress=True)

    subparsers = parser.add_subparsers(dest="command", required=True)

    def add(name, func, help_text, needs_config=True):
        p = subparsers.add_parser(name, help=help_text, parents=[common])
        p.set_defaults(func=func, needs_config=needs_config)
        return p

    # init
    p_init = add("init", cmd_init_module.cmd_init, "Point the config at an epic file", needs_config=False)
    p_init.add_argument("--epic", required=True, help="Path to the epic XML file")
    p_init.add_argument("--assignee", default="agent", help="Default assignee (default: agent)")
    p_init.add_argument("--project-name", help="Optional project name")

    # validate
    add("validate", cmd_validate_module.cmd_validate, "Check document structure and invariants")

    # read-only queries
    add("status", cmd_query_module.cmd_status, "Show epic progress")
    add("current", cmd_query_module.cmd_current, "Show active phase and task")
    add("pending", cmd_query_module.cmd_pending, "List unfinished work")
    add("failing", cmd_query_module.cmd_failing, "List failing tests")
    p_events = add("events", cmd_query_module.cmd_events, "Show recent events")
    p_events.add_argument("--limit", "-n", type=int, default=DEFAULT_EVENT_LIMIT,
                          help=f"Number of events (default: {DEFAULT_EVENT_LIMIT}, 0 = all)")
    p_events.add_argument("--type", help="Only events of this type")
    p_events.add_argument("--no-color", action="store_true", help="Disable color output")

    # lifecycle transitions
    p_start = add("start", cmd_transition_module.cmd_start, "Start epic, phase, task, test, or next")
    p_start.add_argument("target", help="epic | phase | task | test | next | <ID>")
    p_start.add_argument("entity_id", nargs="?", help="Entity ID when a kind is given")
    p_start.add_argument("--allow-failing-tests", action="store_true",
                         help="Start a phase even if earlier phases have failing tests")

    p_done = add("done", cmd_transition_module.cmd_done, "Complete epic, phase or task")
    p_done.add_argument("target", help="epic | phase | task | <ID>")
    p_done.add_argument("entity_id", nargs="?", help="Entity ID when a kind is given")
    p_done.add_argument("--allow-incomplete-tests", action="store_true",
                        help="Complete a task whose tests are not all finished")

    p_cancel = add("cancel", cmd_transition_module.cmd_cancel, "Cancel a task")
    p_cancel.add_argument("target", help="task | test | <ID>")
    p_cancel.add_argument("rest", nargs="*", help="[ID] [reason...]")

    add("pause", cmd_transition_module.cmd_pause, "Pause the epic")
    add("resume", cmd_transition_module.cmd_resume, "Resume a paused epic")

    # tests
    p_pass = add("pass-test", cmd_tests_module.cmd_pass_test, "Mark test(s) passing")
    p_pass.add_argument("ids", nargs="+", help="Test ID(s); several are applied all-or-nothing")

    p_fail = add("fail-test", cmd_tests_module.cmd_fail_test, "Mark a test failing")
    p_fail.add_argument("id", help="Test ID")
    p_fail.add_argument("note", nargs="?", help="Failure note")

    p_cancel_test = add("cancel-test", cmd_tests_module.cmd_cancel_test, "Cancel a test")
    p_cancel_test.add_argument("id", help="Test ID")
    p_cancel_test.add_argument("reason", nargs="?", default="", help="Cancellation reason (required)")

    p_batch = add("batch-test", cmd_tests_module.cmd_batch_test, "Apply several test operations all-or-nothing")
    p_batch.add_argument("operations", nargs="*", help="ID:verb[:reason], verb is pass, fail or cancel")
    p_batch.add_argument("--input", "-i", help="JSON file with a list of {test_id, verb, reason}")
    p_batch.add_argument("--dry-run", action="store_true", help="Validate only")

    # log
    p_log = add("log", cmd_log_module.cmd_log, "Append a work log event")
    p_log.add_argument("message", help="Log message")
    p_log.add_argument("--type", choices=LOG_EVENT_TYPES, default=DEFAULT_LOG_EVENT_TYPE,
                       help=f"Event type (default: {DEFAULT_LOG_EVENT_TYPE})")
    p_log.add_argument("--files", help="Touched files: path:action,... (added, modified, deleted, renamed)")

    # show
    p_show = add("show", cmd_show_module.cmd_show, "Show phase, task or test details")
    p_show.add_argument("target", help="phase | task | test | <ID>")
    p_show.add_argument("entity_id", nargs="?", help="Entity ID when a kind is given")
    p_show.add_argument("--full", action="store_true", help="Include related entities and events")

    # path query
    p_query = add("query", cmd_xpath_module.cmd_query, "Select document elements with a path expression")
    p_query.add_argument("expression", help="e.g. //task[@status='done']")

    # configuration
    add("config", cmd_config_module.cmd_config, "Show the current configuration")
    p_switch = add("switch", cmd_config_module.cmd_switch, "Switch the current epic")
    p_switch.add_argument("epic", nargs="?", help="Epic XML file to switch to")
    p_switch.add_argument("--back", "-b", action="store_true", help="Switch back to the previous epic")

    return parser


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    session = None
    try:
        session = Session.from_args(args, needs_config=args.needs_config)
        return args.func(args, session)
    except AgentPMError as e:
        logger.debug(f"{args.command} failed: {e.kind}: {e}")
        epic = session.epic if session else None
        hint_config = session.hint_config if session else HintConfig()
        hint = generate_hint(context_from_error(e, epic), hint_config)
        emit_error(e, getattr(args, "format", "text"), hint)
        return e.exit_code


if __name__ == '__main__':
    sys.exit(main())
