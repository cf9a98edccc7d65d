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
舵机总线配置模块 (Motor Bus Configuration Module)

功能说明 (Functionality):
    定义舵机总线的配置类,包括串口参数、重试时序和写入确认策略。

    Defines configuration classes for motor buses, including serial parameters, retry
    timing and the write acknowledgement policy.

使用方式 (Usage):
    ```python
    from lerobot_arm.common.robot_devices.motors.configs import FeetechMotorsBusConfig

    config = FeetechMotorsBusConfig(
        port="/dev/ttyACM0",
        motors={
            "shoulder_pan": (1, "sts3215"),  # 舵机名称: (ID, 型号) / name: (id, model)
            "gripper": (6, "sts3215"),
        },
    )
    ```
"""

import abc
from dataclasses import dataclass

import draccus


@dataclass
class MotorsBusConfig(draccus.ChoiceRegistry, abc.ABC):
    """
    舵机总线配置基类 (Motor Bus Configuration Base Class)

    Abstract base class for all motor bus configurations, providing type registration.
    """

    @property
    def type(self) -> str:
        """返回配置类型名称 / Return configuration type name"""
        return self.get_choice_name(self.__class__)


@MotorsBusConfig.register_subclass("feetech")
@dataclass
class FeetechMotorsBusConfig(MotorsBusConfig):
    """
    Feetech 舵机总线配置 (Feetech Motor Bus Configuration)

    属性说明 (Attributes):
        port (str):
            串口路径 / Serial port path
            示例 (Example): "/dev/ttyACM0", "COM3"

        motors (dict[str, tuple[int, str]]):
            舵机配置字典 / Motor configuration dictionary
            格式 (Format): {舵机名称: (舵机ID, 舵机型号) / {motor_name: (motor_id, motor_model)}

        baudrate (int):
            串口波特率 / Serial baudrate
            默认值 (Default): 1_000_000

        num_read_retry (int):
            读取位置的最大尝试次数 / Maximum attempts for a position read
            默认值 (Default): 3

        read_timeout_ms (int):
            单次读取应答的超时 / Timeout of a single reply read
            默认值 (Default): 150

        write_to_read_delay_s (float):
            发送请求后到读取应答前的等待 / Wait between sending a request and reading the reply
            默认值 (Default): 0.01

        retry_delay_s (float):
            两次读取尝试之间的等待 / Wait between two read attempts
            默认值 (Default): 0.02

        inter_motor_delay_s (float):
            顺序读取多个舵机时的间隔 / Delay between motors when reading them in sequence
            默认值 (Default): 0.01

        ack_timeout_ms (int):
            写入后等待确认包的超时 / Timeout of the acknowledgement read after a write
            默认值 (Default): 50

        strict_writes (bool):
            为 True 时,缺失或无效的写入确认会抛出 ProtocolError。
            默认的乐观模式只记录日志。
            When True, a missing or invalid write acknowledgement raises ProtocolError.
            The default optimistic mode only logs it.
    """

    port: str
    motors: dict[str, tuple[int, str]]
    baudrate: int = 1_000_000
    num_read_retry: int = 3
    read_timeout_ms: int = 150
    write_to_read_delay_s: float = 0.01
    retry_delay_s: float = 0.02
    inter_motor_delay_s: float = 0.01
    ack_timeout_ms: int = 50
    strict_writes: bool = False

    def __post_init__(self):
        if self.num_read_retry < 1:
            raise ValueError(f"`num_read_retry` must be at least 1, but {self.num_read_retry} was provided.")
        ids = [idx for idx, _ in self.motors.values()]
        if len(set(ids)) != len(ids):
            raise ValueError(f"Motor ids must be unique on a bus, but got {ids}.")
