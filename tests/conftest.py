import time

import pytest
import serial


class FakeSerial:
    """
    Stands in for serial.Serial: hands out queued chunks, records writes.
    With hold_until_write the chunks stay back until something was written,
    like a device that only streams after a command.
    """
    def __init__(self, chunks=(), fail_after=False, hold_until_write=False):
        self.chunks = list(chunks)
        self.fail_after = fail_after
        self.hold_until_write = hold_until_write
        self.written = []
        self.is_open = True

    def _ready(self):
        return bool(self.chunks) and not (self.hold_until_write and not self.written)

    @property
    def in_waiting(self):
        return len(self.chunks[0]) if self._ready() else 0

    def read(self, size=1):
        if self._ready():
            return self.chunks.pop(0)
        if self.fail_after and not self.chunks:
            raise serial.SerialException("device disconnected")
        time.sleep(0.01)
        return b""

    def write(self, data):
        if not self.is_open:
            raise serial.SerialException("port not open")
        self.written.append(data)
        return len(data)

    def close(self):
        self.is_open = False


@pytest.fixture
def fake_serial():
    return FakeSerial()


@pytest.fixture
def serial_factory():
    return FakeSerial
