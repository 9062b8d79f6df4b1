"""Interfaces of the services the extraction core consumes but does not own."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Protocol, Sequence, runtime_checkable


@dataclass(frozen=True)
class GenerationOptions:
    temperature: float = 0.1
    max_tokens: int = 400
    json_mode: bool = True
    system_prompt: Optional[str] = None


@dataclass(frozen=True)
class QuestionAnswer:
    answer: str
    score: float


@dataclass(frozen=True)
class AttachmentRef:
    """An attachment of a fetched message; `data` is set when already downloaded, `text` when already decoded."""
    filename: str
    attachment_id: Optional[str] = None
    message_id: Optional[str] = None
    data: Optional[bytes | str] = None
    text: Optional[str] = None


@runtime_checkable
class TextGenerator(Protocol):
    """Opaque best-effort text responder. Output is not guaranteed to be JSON."""

    async def generate(self, prompt: str, options: Optional[GenerationOptions] = None) -> str: ...


@runtime_checkable
class StatisticalModels(Protocol):
    async def classify(self, text: str, labels: Sequence[str]) -> list[tuple[str, float]]:
        """Return (label, score) pairs ranked by score, best first."""
        ...

    async def answer_question(self, context: str, question: str) -> QuestionAnswer: ...


class AttachmentFetcher(Protocol):
    async def __call__(self, message_id: str, attachment_id: str) -> bytes | str: ...


class AttachmentDecoder(Protocol):
    def __call__(self, filename: str, data: bytes | str) -> str: ...


class EmailService(Protocol):
    """Mailbox collaborator. The extraction core only consumes what it fetched."""

    async def search_emails(self, query: str) -> list[dict[str, str]]: ...

    async def fetch_email(self, message_id: str) -> dict[str, Any]: ...

    async def fetch_thread(self, thread_id: str) -> list[dict[str, Any]]: ...

    async def fetch_attachment(self, message_id: str, attachment_id: str) -> bytes | str: ...

    async def send_reply(
        self,
        *,
        thread_id: str,
        in_reply_to: str,
        to: str,
        subject: str,
        template_id: str,
        template_vars: dict[str, str],
    ) -> None: ...

    async def modify_labels(
        self,
        message_id: str,
        add_labels: Sequence[str] = (),
        remove_labels: Sequence[str] = (),
    ) -> None: ...
