"""Binary messages exchanged between the master and its slaves.

Every message starts with a one-byte operation code followed by big-endian
unsigned integers. The meaning of a code depends on the direction:

* master to slave: 1 = start calculation (u64 start, u64 end), 2 = stop;
* slave to master: 1 = prime found (u64 prime), 2 = finished (u32 count).
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Union


class OpCode(IntEnum):
    """Operation codes; the same byte means different things per direction."""

    START_CALCULATION = 1
    STOP_CALCULATION = 2
    PRIME_FOUND = 1
    CALCULATION_FINISHED = 2


_U64 = struct.Struct(">Q")
_U32 = struct.Struct(">I")
_RANGE = struct.Struct(">QQ")


@dataclass(frozen=True)
class TaskMessage:
    """Master asks a slave to search ``[start, end]``."""

    start: int
    end: int


@dataclass(frozen=True)
class StopMessage:
    """Master asks a slave to stop its calculation."""


@dataclass(frozen=True)
class PrimeMessage:
    """Slave reports one prime it found."""

    prime: int


@dataclass(frozen=True)
class FinishedMessage:
    """Slave reports that one worker finished, with its prime count."""

    count: int


MasterToSlave = Union[TaskMessage, StopMessage]
SlaveToMaster = Union[PrimeMessage, FinishedMessage]
Message = Union[TaskMessage, StopMessage, PrimeMessage, FinishedMessage]


def _pack(packer: struct.Struct, *values: int) -> bytes:
    try:
        return packer.pack(*values)
    except struct.error as exc:
        raise ValueError(f"value out of range for the wire format: {values}") from exc


def encode(message: Message) -> bytes:
    """Return the wire bytes for ``message``."""
    if isinstance(message, TaskMessage):
        return bytes([OpCode.START_CALCULATION]) + _pack(_RANGE, message.start, message.end)
    if isinstance(message, StopMessage):
        return bytes([OpCode.STOP_CALCULATION])
    if isinstance(message, PrimeMessage):
        return bytes([OpCode.PRIME_FOUND]) + _pack(_U64, message.prime)
    if isinstance(message, FinishedMessage):
        return bytes([OpCode.CALCULATION_FINISHED]) + _pack(_U32, message.count)
    raise TypeError(f"cannot encode {type(message).__name__}")


class _Decoder:
    """Buffers incoming bytes and yields complete messages.

    Unknown operation codes are skipped one byte at a time.
    """

    def __init__(self) -> None:
        self._buffer = bytearray()

    def _parse(self, opcode: int, body: bytes) -> tuple[int, object] | None:
        raise NotImplementedError

    @property
    def pending(self) -> int:
        """Number of buffered bytes not yet decoded."""
        return len(self._buffer)

    def feed(self, data: bytes) -> list:
        """Add ``data`` and return every message now complete."""
        self._buffer.extend(data)
        messages = []
        while self._buffer:
            parsed = self._parse(self._buffer[0], bytes(self._buffer[1:]))
            if parsed is None:
                break
            consumed, message = parsed
            del self._buffer[: 1 + consumed]
            if message is not None:
                messages.append(message)
        return messages


class SlaveMessageDecoder(_Decoder):
    """Decodes what a slave receives from the master."""

    def _parse(self, opcode, body):
        if opcode == OpCode.START_CALCULATION:
            if len(body) < _RANGE.size:
                return None
            start, end = _RANGE.unpack_from(body)
            return _RANGE.size, TaskMessage(start, end)
        if opcode == OpCode.STOP_CALCULATION:
            return 0, StopMessage()
        return 0, None

    def feed(self, data: bytes) -> list[MasterToSlave]:
        """Add ``data`` and return every complete master message."""
        return super().feed(data)


class MasterMessageDecoder(_Decoder):
    """Decodes what the master receives from a slave."""

    def _parse(self, opcode, body):
        if opcode == OpCode.PRIME_FOUND:
            if len(body) < _U64.size:
                return None
            (prime,) = _U64.unpack_from(body)
            return _U64.size, PrimeMessage(prime)
        if opcode == OpCode.CALCULATION_FINISHED:
            if len(body) < _U32.size:
                return None
            (count,) = _U32.unpack_from(body)
            return _U32.size, FinishedMessage(count)
        return 0, None

    def feed(self, data: bytes) -> list[SlaveToMaster]:
        """Add ``data`` and return every complete slave message."""
        return super().feed(data)