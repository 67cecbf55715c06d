# backend/app/services/base.py
"""
Base service for the BookOn settlement backend.

Repositories flush, services commit. Every public operation is timed into
Prometheus through ``@BaseService.measure_operation``.
"""

from contextlib import contextmanager
from functools import wraps
import logging
import time
from typing import Any, Callable, Iterator, TypeVar, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException, ServiceException
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

SLOW_OPERATION_SECONDS = 1.0


class BaseService:
    """
    Base class for settlement services.

    Subclasses take a SQLAlchemy session and build their repositories
    through ``RepositoryFactory``. State changes happen inside
    ``with self.transaction():``.
    """

    def __init__(self, db: Session):
        self.db = db
        self.logger = logging.getLogger(self.__class__.__name__)

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        Commit on success, roll back on any error.

        Database failures surface as ``ServiceException``; domain errors
        raised inside the block propagate unchanged after the rollback.
        """
        try:
            yield self.db
            self.db.commit()
        except (SQLAlchemyError, RepositoryException) as exc:
            self.logger.error("Transaction failed: %s", str(exc))
            self.db.rollback()
            raise ServiceException(f"Database operation failed: {exc}") from exc
        except Exception as exc:
            self.logger.debug("Transaction rolled back: %s", type(exc).__name__)
            self.db.rollback()
            raise

    @staticmethod
    def measure_operation(operation_name: str) -> Callable[[F], F]:
        """
        Time a service method and record it in Prometheus.

        Usage:
            @BaseService.measure_operation("wallet_use_credits")
            def use_credits(self, ...):
                ...
        """

        def decorator(func: F) -> F:
            @wraps(func)
            def wrapper(self: "BaseService", *args: Any, **kwargs: Any) -> Any:
                started = time.perf_counter()
                error_type = None
                try:
                    return func(self, *args, **kwargs)
                except Exception as exc:
                    error_type = type(exc).__name__
                    raise
                finally:
                    elapsed = time.perf_counter() - started
                    if elapsed > SLOW_OPERATION_SECONDS:
                        self.logger.warning(
                            "Slow operation: %s took %.2fs", operation_name, elapsed
                        )
                    prometheus_metrics.record_service_operation(
                        service=self.__class__.__name__,
                        operation=operation_name,
                        duration=elapsed,
                        status="error" if error_type else "success",
                        error_type=error_type,
                    )

            setattr(wrapper, "_operation_name", operation_name)
            return cast(F, wrapper)

        return decorator

    def log_operation(self, operation: str, **context: Any) -> None:
        """Log a business event with structured context."""
        self.logger.info("Operation: %s", operation, extra={"operation": operation, **context})
