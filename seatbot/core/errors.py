from __future__ import annotations


class SeatBotError(RuntimeError):
    """Base for failures an operator can read and act on."""


class NotFound(SeatBotError):
    pass


class InvalidState(SeatBotError):
    pass


class NeedNewAccount(SeatBotError):
    """No account has capacity left for the product and no fallback applies."""

    def __init__(self, product_id: str, platform: str = "", seat_mode: str = "") -> None:
        self.product_id = product_id
        self.platform = platform
        self.seat_mode = seat_mode
        super().__init__(f"NEED_NEW_ACCOUNT product={product_id} platform={platform} mode={seat_mode}")


class AccessDenied(SeatBotError):
    pass
