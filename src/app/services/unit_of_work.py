"""Unit of Work Interface

Groups repository writes into one database transaction.
"""

from abc import ABC, abstractmethod


class UnitOfWork(ABC):
    """
    Transaction boundary for use cases

    Use cases call commit() once all writes of an operation are staged and
    rollback() on any failure, so partial effects never become durable.
    """

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        if exc_type is not None:
            await self.rollback()

    @abstractmethod
    async def commit(self):
        pass

    @abstractmethod
    async def rollback(self):
        pass
