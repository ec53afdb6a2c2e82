"""
Console email sender adapter - Implements EmailSender protocol.

This module provides a console-based implementation of the domain's
email sender port, logging outgoing messages for demo purposes.
"""

import logging

logger = logging.getLogger(__name__)


class ConsoleEmailSender:
    """
    Implements EmailSender protocol via console logging.

    Uses structural subtyping - no explicit inheritance from Protocol.
    For demo/development purposes - confirmation links end up in the logs.
    """

    def send(self, to: str, from_address: str, subject: str, body: str) -> None:
        """
        Log an outgoing message (simulates email delivery).

        In production, this would be replaced with an SMTP adapter.
        The message is logged at INFO level to be visible in the application logs.

        Args:
            to: Recipient email address (normalized by domain layer)
            from_address: Sender address from configuration
            subject: Message subject
            body: Plain-text body including the confirmation link
        """
        logger.info("[EMAIL] To: %s From: %s Subject: %s\n%s", to, from_address, subject, body)
