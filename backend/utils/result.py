# backend/utils/result.py
import enum
from dataclasses import dataclass
from typing import Generic, TypeVar, Union

from utils.exceptions import (
    ApiException,
    BadRequestException,
    ConflictException,
    ForbiddenException,
    NotFoundException,
)

T = TypeVar("T")


class ErrorKind(str, enum.Enum):
    NOT_FOUND = "NOT_FOUND"
    BAD_REQUEST = "BAD_REQUEST"
    FORBIDDEN = "FORBIDDEN"
    CONFLICT = "CONFLICT"


_EXCEPTIONS = {
    ErrorKind.NOT_FOUND: NotFoundException,
    ErrorKind.BAD_REQUEST: BadRequestException,
    ErrorKind.FORBIDDEN: ForbiddenException,
    ErrorKind.CONFLICT: ConflictException,
}


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Err:
    kind: ErrorKind
    detail: str

    def to_exception(self) -> ApiException:
        return _EXCEPTIONS[self.kind](self.detail)


Result = Union[Ok[T], Err]


def unwrap(result: "Result[T]") -> T:
    # Route boundary: turn a service Err into the HTTP exception the handlers render
    if isinstance(result, Err):
        raise result.to_exception()
    return result.value
