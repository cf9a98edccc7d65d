# Copyright 2024 The HuggingFace Inc. team. All rights reserved.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""
串口传输层 (Serial Port Transport)

功能说明 (Functionality):
    舵机总线只依赖一个很小的传输接口:写入字节、带超时读取字节、关闭。
    `SerialPortHandler` 用 pyserial 实现这个接口;测试中可以替换为内存中的模拟总线。

    The motor bus depends on a very small transport contract: write bytes, read bytes with a
    timeout, close. `SerialPortHandler` implements it on top of pyserial. Tests swap in an
    in-memory simulated bus.

接口约定 (Contract):
    - write(data): 发送全部字节 / send all bytes
    - read(timeout_ms): 返回至少 1 个字节;超时抛出 ReadTimeoutError,端口关闭抛出 TransportError
      returns at least one byte; raises ReadTimeoutError on timeout and TransportError when closed
    - close(): 释放端口 / release the port
"""

from typing import Protocol

import serial

from lerobot_arm.common.robot_devices.utils import ReadTimeoutError, TransportError


class MotorsPort(Protocol):
    def write(self, data: bytes) -> None: ...

    def read(self, timeout_ms: int) -> bytes: ...

    def close(self) -> None: ...


class SerialPortHandler:
    """
    pyserial 串口封装 (pyserial Port Wrapper)

    使用示例 (Usage Example):
        ```python
        port = SerialPortHandler("/dev/ttyACM0", baudrate=1_000_000)
        port.open()
        port.write(b"\\xff\\xff\\x01\\x04\\x02\\x38\\x02\\xbe")
        reply = port.read(timeout_ms=150)
        port.close()
        ```
    """

    def __init__(self, port: str, baudrate: int = 1_000_000):
        self.port = port
        self.baudrate = baudrate
        self.ser: serial.Serial | None = None

    @property
    def is_open(self) -> bool:
        return self.ser is not None and self.ser.is_open

    def open(self):
        try:
            self.ser = serial.Serial(
                port=self.port,
                baudrate=self.baudrate,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                timeout=0,
            )
        except serial.SerialException as e:
            raise TransportError(f"Failed to open port '{self.port}'.") from e

    def write(self, data: bytes) -> None:
        if not self.is_open:
            raise TransportError(f"Port '{self.port}' is not open.")
        try:
            self.ser.write(data)
            self.ser.flush()
        except serial.SerialException as e:
            raise TransportError(f"Write failed on port '{self.port}'.") from e

    def read(self, timeout_ms: int) -> bytes:
        if not self.is_open:
            raise TransportError(f"Port '{self.port}' is not open.")

        try:
            # pyserial 阻塞直到有数据或超时 / pyserial blocks until data arrives or the timeout expires
            self.ser.timeout = max(timeout_ms, 0) / 1000
            data = self.ser.read(max(1, self.ser.in_waiting))
        except (serial.SerialException, OSError) as e:
            raise TransportError(f"Read failed on port '{self.port}'.") from e

        if not data:
            raise ReadTimeoutError(f"No reply on port '{self.port}' after {timeout_ms}ms.")
        return data

    def close(self) -> None:
        if self.ser is not None:
            self.ser.close()
            self.ser = None
