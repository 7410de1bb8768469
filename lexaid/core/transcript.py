"""In-memory transcript of one conversation."""

from lexaid.api.schemas import MessageRecord, Role


class Transcript:
    """Ordered, append-only list of messages, oldest first.

    `generation` increases on every clear(), so a caller can tell whether the
    transcript was reset while a request was outstanding.
    """

    def __init__(self, messages: list[MessageRecord] | None = None):
        self._messages: list[MessageRecord] = list(messages or [])
        self.generation = 0

    def append(self, message: MessageRecord) -> MessageRecord:
        if message.role is None or message.content is None:
            raise ValueError("message needs a role and content")
        self._messages.append(message)
        return message

    def add(self, role: Role, content: str) -> MessageRecord:
        return self.append(MessageRecord(role=role, content=content))

    def clear(self) -> None:
        self._messages = []
        self.generation += 1

    def snapshot(self) -> tuple[MessageRecord, ...]:
        return tuple(self._messages)

    def last(self, role: Role | None = None) -> MessageRecord | None:
        for message in reversed(self._messages):
            if role is None or message.role == role:
                return message
        return None

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self):
        return iter(self.snapshot())
