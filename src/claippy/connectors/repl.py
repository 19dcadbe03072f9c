"""Interactive REPL — reads lines, routes bang-commands, streams queries."""

from __future__ import annotations

import enum
import logging
import sys
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING, TextIO

from prompt_toolkit import PromptSession
from prompt_toolkit.auto_suggest import AutoSuggestFromHistory
from prompt_toolkit.completion import CompleteEvent, Completer, Completion, PathCompleter
from prompt_toolkit.document import Document
from prompt_toolkit.history import FileHistory

from claippy.commands import BANG, command_names, dispatch, emit, parse_repl_line
from claippy.errors import ClaippyError

if TYPE_CHECKING:
    from claippy.core import Claippy

logger = logging.getLogger(__name__)

ReadLine = Callable[[str], str]


class ReplState(enum.Enum):
    AWAITING_INPUT = "awaiting_input"
    EXECUTING_ACTION = "executing_action"
    CLOSED = "closed"


class ReplCompleter(Completer):
    """Command names after `!`, filesystem paths for the word under the cursor."""

    def __init__(self) -> None:
        self._paths = PathCompleter(expanduser=True)

    def get_completions(
        self, document: Document, complete_event: CompleteEvent
    ) -> Iterable[Completion]:
        text = document.text_before_cursor
        if text.startswith(BANG) and " " not in text:
            prefix = text[len(BANG):]
            for name in command_names():
                if name.startswith(prefix):
                    yield Completion(name, start_position=-len(prefix))
            return

        word = document.get_word_before_cursor(WORD=True)
        if not word:
            return
        yield from self._paths.get_completions(
            Document(word, cursor_position=len(word)), complete_event
        )


class ReplLoop:
    """Single-threaded read-eval-print loop over the shared command table."""

    def __init__(
        self,
        app: Claippy,
        read_line: ReadLine | None = None,
        output: TextIO | None = None,
    ) -> None:
        self.app = app
        self.state = ReplState.AWAITING_INPUT
        self.output = output or sys.stdout
        self._read_line = read_line

    def _create_prompt_session(self) -> PromptSession:
        history_file = self.app.config.history_file
        history_file.parent.mkdir(parents=True, exist_ok=True)
        return PromptSession(
            history=FileHistory(str(history_file)),
            auto_suggest=AutoSuggestFromHistory(),
            completer=ReplCompleter(),
            complete_while_typing=False,  # Only complete on Tab
        )

    def prompt(self) -> str:
        label = self.app.active_label()
        return f"claippy[{label}]> " if label else "claippy> "

    def run(self) -> None:
        if self._read_line is None:
            self._read_line = self._create_prompt_session().prompt

        self.app.interactive = True
        self.app.closed = False
        self.output.write("Claippy REPL (!help for commands, Ctrl-D to quit)\n")
        try:
            while self.state is not ReplState.CLOSED:
                self.step()
        finally:
            self.app.interactive = False
        self.output.write("Bye!\n")

    def step(self) -> None:
        """Read one line and execute it. Moves to CLOSED on EOF or interrupt."""
        try:
            prompt = self.prompt()
        except ClaippyError as e:
            self._report(e)
            prompt = "claippy> "
        try:
            line = self._read_line(prompt)
        except (EOFError, KeyboardInterrupt):
            self.state = ReplState.CLOSED
            return

        try:
            parsed = parse_repl_line(line)
        except ClaippyError as e:
            self._report(e)
            return
        if parsed is None:
            return

        self.state = ReplState.EXECUTING_ACTION
        try:
            emit(dispatch(self.app, *parsed), self.output)
        except KeyboardInterrupt:
            # Nothing from the interrupted action has been persisted
            self.output.write("\n[interrupted]\n")
        except ClaippyError as e:
            self._report(e)
        finally:
            self.state = ReplState.CLOSED if self.app.closed else ReplState.AWAITING_INPUT

    def _report(self, error: ClaippyError) -> None:
        logger.debug("Command failed: %r", error)
        self.output.write(f"\nerror: {error}\n")
        self.output.flush()
