"""
Outgoing mail for ReadCommons.

Messages are rendered from small named templates and handed to an async
transport. The default transport only logs; deployments plug in a real one.
"""

from dataclasses import dataclass
from string import Template
from typing import Any, Awaitable, Callable, Optional

from loguru import logger


@dataclass
class EmailMessage:
    """A rendered message ready for delivery."""

    sender: str
    recipient: str
    subject: str
    body: str


Transport = Callable[[EmailMessage], Awaitable[None]]


TEMPLATES: dict[str, tuple[str, str]] = {
    "user_welcome": (
        "Welcome to ReadCommons!",
        "Hi $username,\n\n"
        "Thanks for signing up for a ReadCommons account. Your user ID number is $user_id.\n\n"
        "Please send a PUT request to /api/v1/users/activated with the following JSON body "
        "to activate your account:\n\n"
        "{\"token\": \"$activation_token\"}\n\n"
        "This is a one-time use token and it will expire in $ttl.\n\n"
        "Thanks,\nThe ReadCommons Team\n",
    ),
    "token_activation": (
        "Activate your ReadCommons account",
        "Hi,\n\n"
        "Please send a PUT request to /api/v1/users/activated with the following JSON body "
        "to activate your account:\n\n"
        "{\"token\": \"$activation_token\"}\n\n"
        "This is a one-time use token and it will expire in $ttl.\n\n"
        "Thanks,\nThe ReadCommons Team\n",
    ),
    "token_password_reset": (
        "Reset your ReadCommons password",
        "Hi,\n\n"
        "Please send a PUT request to /api/v1/users/password with the following JSON body "
        "to set a new password:\n\n"
        "{\"password\": \"your new password\", \"token\": \"$password_reset_token\"}\n\n"
        "This is a one-time use token and it will expire in $ttl.\n\n"
        "Thanks,\nThe ReadCommons Team\n",
    ),
}


async def log_transport(message: EmailMessage) -> None:
    """Default transport: record the message instead of delivering it."""
    logger.info(f"Mail to {message.recipient}: {message.subject}")
    logger.debug(message.body)


class Mailer:
    """Renders templates and hands the result to a transport."""

    def __init__(self, sender: str, transport: Optional[Transport] = None):
        self.sender = sender
        self.transport = transport or log_transport

    def render(self, recipient: str, template: str, data: dict[str, Any]) -> EmailMessage:
        """
        Render a named template.

        Raises:
            KeyError: Unknown template or a placeholder missing from ``data``.
        """
        subject, body = TEMPLATES[template]
        return EmailMessage(
            sender=self.sender,
            recipient=recipient,
            subject=Template(subject).substitute(data),
            body=Template(body).substitute(data),
        )

    async def send(self, recipient: str, template: str, data: dict[str, Any]) -> None:
        message = self.render(recipient, template, data)
        await self.transport(message)
