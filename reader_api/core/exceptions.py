"""Data layer exceptions. "Not found" is never an exception here: repositories return None/False."""


class DataLayerError(Exception):
    """Base class for errors raised by the data access layer."""


class RetryExhaustedError(DataLayerError):
    """A query kept failing with transient errors until the retry budget ran out."""

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Query failed after {attempts} attempt(s): {last_error}")


class DatabaseClosedError(DataLayerError):
    """The pool was shut down by a signal and will not be reopened."""


class InvalidQueryError(DataLayerError, ValueError):
    """Caller asked for something the query builder refuses (unknown sort column, empty update)."""


class CategoryInUseError(DataLayerError):
    """Category still has active children or articles, so it cannot be deleted."""

    def __init__(self, category_id: int, children: int = 0, articles: int = 0) -> None:
        self.category_id = category_id
        self.children = children
        self.articles = articles
        if children:
            message = f"Category {category_id} has {children} active child categories"
        else:
            message = f"Category {category_id} has {articles} articles"
        super().__init__(message)


class CategoryTreeError(DataLayerError):
    """parent_id chain is cyclic or deeper than the configured limit."""

    def __init__(self, category_id: int, message: str) -> None:
        self.category_id = category_id
        super().__init__(message)
