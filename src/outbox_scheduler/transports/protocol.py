from typing import Protocol


class DeliveryTransport(Protocol):
    """
    Protocol class for outbound delivery transports.
    """

    async def send(self, recipient: str, subject: str, html_body: str, text_body: str) -> None:
        """
        Deliver one message.

        Args:
            recipient (str): Destination address.
            subject (str): Subject line.
            html_body (str): HTML alternative of the body.
            text_body (str): Plain text alternative of the body.

        Raises:
            Exception: Any failure to deliver. The caller records its message.
        """
        ...
