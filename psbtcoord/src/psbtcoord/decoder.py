"""
Decoding of RPC ``result`` payloads into typed values.

``decode`` never raises: an absent or mismatched result comes back as
``None`` so that callers cannot confuse it with a transport failure.
``expect`` is the stricter variant used by the lifecycle stages.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Any, TypeVar

from loguru import logger
from pydantic import TypeAdapter, ValidationError

from psbtcoord.errors import DecodeError, ProtocolError
from psbtcoord.models import RpcResponse

T = TypeVar("T")


@lru_cache(maxsize=32)
def _adapter(shape: Any) -> TypeAdapter[Any]:
    return TypeAdapter(shape)


def decode(response: RpcResponse, shape: type[T]) -> T | None:
    """Validate ``response.result`` against ``shape``; ``None`` if it does not fit."""
    if response.result is None:
        return None
    try:
        return _adapter(shape).validate_python(response.result)
    except ValidationError as e:
        logger.debug(f"Result does not match {getattr(shape, '__name__', shape)}: {e}")
        return None


def raise_for_error(response: RpcResponse, method: str) -> None:
    if response.error is not None:
        raise ProtocolError(method, response.error.code, response.error.message)


def expect(response: RpcResponse, shape: type[T], stage: str, method: str = "") -> T:
    """
    Return the decoded result or raise.

    Raises:
        ProtocolError: If the envelope carries an error
        DecodeError: If the result is absent or has the wrong shape
    """
    raise_for_error(response, method or stage)
    value = decode(response, shape)
    if value is None:
        logger.error(f"Could not decode response at stage '{stage}'")
        raise DecodeError(stage, f"expected {getattr(shape, '__name__', shape)}")
    return value
