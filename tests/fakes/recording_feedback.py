"""UserFeedback that records messages instead of printing them."""

from stacked.core.user_feedback import UserFeedback


class RecordingFeedback(UserFeedback):
    def __init__(self) -> None:
        self._messages: list[tuple[str, str]] = []

    @property
    def messages(self) -> list[tuple[str, str]]:
        """(level, message) in the order they were shown."""
        return self._messages

    @property
    def warnings(self) -> list[str]:
        return [message for level, message in self._messages if level == "warning"]

    def info(self, message: str) -> None:
        self._messages.append(("info", message))

    def success(self, message: str) -> None:
        self._messages.append(("success", message))

    def warning(self, message: str) -> None:
        self._messages.append(("warning", message))

    def error(self, message: str) -> None:
        self._messages.append(("error", message))
