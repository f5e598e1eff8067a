from typing import Optional

from fastapi import HTTPException, status


class QueueError(Exception):
    """Business-rule rejection; state is left unchanged."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def detail(self):
        return self.message


class NotFound(QueueError):
    status_code = status.HTTP_404_NOT_FOUND


class InvalidState(QueueError):
    pass


class QueueClosed(InvalidState):
    pass


class InvalidInput(QueueError):
    pass


class StockExceeded(QueueError):
    def __init__(self, category: str, available: int, requested: int, already_reserved: int):
        self.category = category
        self.available = int(available)
        self.requested = int(requested)
        self.already_reserved = int(already_reserved)
        super().__init__(
            f"Insufficient {category.capitalize()} inventory. "
            f"Available: {self.available}, Requested: {self.requested}, Already reserved: {self.already_reserved}"
        )

    def detail(self):
        return {
            "error": "Stock exceeded",
            "message": self.message,
            "category": self.category,
            "available": self.available,
            "requested": self.requested,
            "alreadyReserved": self.already_reserved,
        }


class StorageFailure(QueueError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class ConcurrentUpdate(Exception):
    """A versioned write lost a race; the whole transaction is retried."""


def to_http_exception(err: QueueError) -> HTTPException:
    return HTTPException(status_code=err.status_code, detail=err.detail())
