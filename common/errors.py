# common/errors.py
from __future__ import annotations
from typing import Any, List, Optional


class InvalidArgument(ValueError):
    """Missing identity field or body that failed validation. Raised before any I/O."""

    def __init__(self, problems: List[str] | str):
        if isinstance(problems, str):
            problems = [problems]
        self.problems: List[str] = list(problems)
        super().__init__("; ".join(self.problems))


class Fault(Exception):
    """
    The service answered with a status outside the operation's success set.
    `body` is the decoded JSON error payload when decodable, else the raw text.
    """

    def __init__(self, status: int, body: Any, method: Optional[str] = None, url: Optional[str] = None):
        self.status = status
        self.body = body
        self.method = method
        self.url = url
        where = f" ({method} {url})" if method and url else ""
        super().__init__(f"{status}{where}: {body!r}")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Fault):
            return NotImplemented
        return type(self) is type(other) and (self.status, self.body) == (other.status, other.body)

    def __hash__(self) -> int:
        return hash((type(self).__name__, self.status, repr(self.body)))


class MalformedResponse(Exception):
    """A success status whose body could not be decoded into the expected type."""

    def __init__(self, status: int, text: str, reason: str):
        self.status = status
        self.text = text
        self.reason = reason
        super().__init__(f"{status}: cannot decode response ({reason})")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MalformedResponse):
            return NotImplemented
        return (self.status, self.text) == (other.status, other.text)

    def __hash__(self) -> int:
        return hash((self.status, self.text))


class OperationFailed(Fault):
    """A long-running operation finished in a Failed or Canceled state."""

    def __init__(self, status: int, body: Any, state: str, url: Optional[str] = None):
        self.state = state
        super().__init__(status, body, method="GET", url=url)
