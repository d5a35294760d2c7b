import re
from enum import Enum


class CommandKind(str, Enum):
    CREATE = "create"
    LIST = "list"
    COMPLETE = "complete"
    DELETE = "delete"
    HELP = "help"
    FALLBACK = "fallback"


TASK_NOUNS = ("task", "todo")

# Ordered: first matching rule wins. Explicit verbs come before the generic
# ones, and every task rule comes before help.
COMMAND_RULES: list[tuple[CommandKind, tuple[str, ...], bool]] = [
    (CommandKind.CREATE, ("create",), True),
    (CommandKind.LIST, ("list", "show"), True),
    (CommandKind.COMPLETE, ("complete",), True),
    (CommandKind.DELETE, ("delete",), True),
    (CommandKind.CREATE, ("add", "new", "make"), True),
    (CommandKind.HELP, ("help",), False),
]

# A message that opens with a command verb means that command, whatever
# words its title carries ("complete task shopping list").
LEADING_VERBS = {
    verb: kind
    for kind, verbs, needs_task in COMMAND_RULES
    if needs_task
    for verb in verbs
}

LEADING_WORD = re.compile(r"[a-z]+")


def normalize(text: str) -> str:
    return (text or "").strip().lower()


def classify(text: str) -> CommandKind:
    """Map a message to the command it expresses, FALLBACK when none."""
    command = normalize(text)
    mentions_task = any(noun in command for noun in TASK_NOUNS)

    leading = LEADING_WORD.match(command)
    if mentions_task and leading and leading.group(0) in LEADING_VERBS:
        return LEADING_VERBS[leading.group(0)]

    for kind, verbs, needs_task in COMMAND_RULES:
        if needs_task and not mentions_task:
            continue
        if any(verb in command for verb in verbs):
            return kind
    return CommandKind.FALLBACK
