from functools import wraps
from logging import (
    INFO,
    Logger,
    basicConfig,
    getLogger,
)
from typing import Type, TypeVar


LOGGER_NAMESPACE = "ephemeral_runner"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

OriginalClass = TypeVar("OriginalClass")

class NewLoggingClassStub:
    logger: Logger


def configure_logging(level: int = INFO):
    """
    Root handler shared by every runner logger. Safe to call repeatedly, only the
    first call installs a handler.

    """
    basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def get_logger(name: str) -> Logger:
    """
    Logger for module level callers, nested under the package namespace so that
    all lifecycle messages can be filtered together
    """
    configure_logging()
    return getLogger(f"{LOGGER_NAMESPACE}.{name}")


def logger(cls: Type[OriginalClass]) -> Type[OriginalClass]:
    """
    Decorate a class with a .logger attribute named after the class
    """
    @wraps(cls, updated=())
    class WrappedClass(cls, NewLoggingClassStub):
        logger = get_logger(cls.__name__)

    return WrappedClass
