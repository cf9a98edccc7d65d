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
机器人设备通用工具 (Robot Device Utilities)

功能说明 (Functionality):
    设备连接状态与总线通信相关的异常类型。
    Exception types for device connection state and bus communication.
"""


class TransportError(ConnectionError):
    """The serial link is not open or was closed in the middle of an operation."""


class RobotDeviceNotConnectedError(TransportError):
    """Exception raised when the robot device is not connected."""

    def __init__(
        self, message="This robot device is not connected. Try calling `robot_device.connect()` first."
    ):
        self.message = message
        super().__init__(self.message)


class RobotDeviceAlreadyConnectedError(Exception):
    """Exception raised when the robot device is already connected."""

    def __init__(
        self,
        message="This robot device is already connected. Try not calling `robot_device.connect()` twice.",
    ):
        self.message = message
        super().__init__(self.message)


class ProtocolError(Exception):
    """A packet could not be encoded, or a reply was malformed, mismatched or reported an error."""


class ReadTimeoutError(ProtocolError):
    """No bytes arrived before the read timeout expired."""
