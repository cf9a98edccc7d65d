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
遥操作器基类模块 (Teleoperator Base Module)

功能说明 (Functionality):
    定义所有遥操作策略共享的数据类型和接口:
    - MotorConfig: 单个关节的位置和限位,只由当前遥操作器修改
    - MotorPositionChangedEvent: 每次成功写入目标位置后发出的事件
    - Teleoperator: 抽象基类,提供 start/stop/get_state/move_motor 与监听器列表

    Defines the data types and interface shared by all teleoperation strategies:
    - MotorConfig: position and limits of one joint, only mutated by the active teleoperator
    - MotorPositionChangedEvent: emitted after every goal position write
    - Teleoperator: abstract base class with start/stop/get_state/move_motor and listener lists

事件时间戳 (Event Timestamps):
    command_sent_timestamp 在写入前采样,position_applied_timestamp 在写入后采样。
    两者来自同一个单调时钟(默认 time.perf_counter),录制器用前者作为帧时间。

    command_sent_timestamp is sampled before the write and position_applied_timestamp after
    it. Both come from the same monotonic clock (time.perf_counter by default). The recorder
    uses the former as the frame time.
"""

import abc
import enum
import logging
import time
from copy import copy
from dataclasses import dataclass, field
from typing import Callable

from lerobot_arm.common.robot_devices.motors.feetech import FeetechMotorsBus


class MotorNormMode(enum.Enum):
    # 身体关节归一化到 [-100, 100] / Body joints map to [-100, 100]
    RANGE_M100_100 = "range_m100_100"
    # 夹爪归一化到 [0, 100] / The gripper maps to [0, 100]
    RANGE_0_100 = "range_0_100"


@dataclass(frozen=True)
class KeyBinding:
    motor: str
    direction: int
    description: str = ""


@dataclass
class KeyState:
    pressed: bool
    timestamp: float


@dataclass
class MotorConfig:
    id: int
    name: str
    current_position: float
    min_position: float = 0
    max_position: float = 4095
    norm_mode: MotorNormMode = MotorNormMode.RANGE_M100_100

    def clamp(self, position: float) -> float:
        return min(max(position, self.min_position), self.max_position)


def normalize_position(motor_config: MotorConfig, position: float | None = None) -> float:
    """
    将原始步数归一化 (Normalize Raw Steps)

    按照舵机的 [min_position, max_position] 线性映射到 [-100, 100] 或 [0, 100]。
    限位为零宽时返回区间下界。

    Maps raw steps linearly from the motor's [min_position, max_position] to [-100, 100]
    or [0, 100]. A zero-width range maps to the lower bound of the target interval.
    """
    if position is None:
        position = motor_config.current_position

    if motor_config.norm_mode is MotorNormMode.RANGE_0_100:
        min_norm, max_norm = 0.0, 100.0
    else:
        min_norm, max_norm = -100.0, 100.0

    span = motor_config.max_position - motor_config.min_position
    if span <= 0:
        return min_norm
    return (position - motor_config.min_position) / span * (max_norm - min_norm) + min_norm


@dataclass(frozen=True)
class MotorPositionChangedEvent:
    motor_name: str
    motor_config: MotorConfig
    previous_position: float
    new_position: float
    command_sent_timestamp: float
    position_applied_timestamp: float


@dataclass
class TeleoperationState:
    is_active: bool
    motor_configs: list[MotorConfig]
    last_update: float
    key_states: dict[str, KeyState] = field(default_factory=dict)
    error: Exception | None = None


class Teleoperator(abc.ABC):
    """
    遥操作器抽象基类 (Teleoperator Abstract Base Class)

    功能说明 (Functionality):
        持有舵机总线和关节配置,负责把目标位置限制在关节范围内、写入舵机、
        更新当前位置并通知监听器。子类只决定"何时移动哪个关节"。

        Owns the motor bus and the joint configs. It clamps targets to the joint range, writes
        them, updates the current position and notifies listeners. Subclasses only decide which
        joint moves and when.

    状态机 (State Machine):
        Idle --start()--> Active --stop()--> Idle
        在 Active 状态下再次 start() 不产生任何效果。
        Calling start() while Active has no effect.

    监听器 (Listeners):
        on_change(callback): 接收 MotorPositionChangedEvent / receives MotorPositionChangedEvent
        on_state_update(callback): 接收 TeleoperationState / receives TeleoperationState
        监听器在写入它的线程中同步调用,抛出的异常会向上传播。
        Listeners run synchronously on the writing thread and their exceptions propagate.
    """

    def __init__(
        self,
        motors_bus: FeetechMotorsBus,
        motor_configs: list[MotorConfig],
        clock: Callable[[], float] = time.perf_counter,
    ):
        self.motors_bus = motors_bus
        self.motor_configs = list(motor_configs)
        self.clock = clock

        self.is_active = False
        self.last_update = 0.0
        self.error: Exception | None = None

        self._change_listeners: list[Callable[[MotorPositionChangedEvent], None]] = []
        self._state_listeners: list[Callable[[TeleoperationState], None]] = []
        # 与同一总线上的其他遥操作器共享 / Shared with every other teleoperator on the bus
        self._bus_lock = motors_bus.lock

    @property
    def motor_names(self) -> list[str]:
        return [motor.name for motor in self.motor_configs]

    def on_change(self, callback: Callable[[MotorPositionChangedEvent], None]):
        self._change_listeners.append(callback)

    def on_state_update(self, callback: Callable[[TeleoperationState], None]):
        self._state_listeners.append(callback)

    def remove_listener(self, callback: Callable):
        if callback in self._change_listeners:
            self._change_listeners.remove(callback)
        if callback in self._state_listeners:
            self._state_listeners.remove(callback)

    def set_motor_configs(self, motor_configs: list[MotorConfig]):
        """Replaces the joint configs, e.g. after a new calibration."""
        with self._bus_lock:
            self.motor_configs = list(motor_configs)

    def get_motor_config(self, motor_name: str) -> MotorConfig:
        for motor in self.motor_configs:
            if motor.name == motor_name:
                return motor
        raise KeyError(f"Unknown motor '{motor_name}'. Available motors: {self.motor_names}")

    def initialize(self):
        """Reads the present position of every motor into its config."""
        with self._bus_lock:
            for motor in self.motor_configs:
                position = self.motors_bus.read_position(motor.id)
                if position is not None:
                    motor.current_position = position
                else:
                    logging.warning(f"Could not read '{motor.name}', keeping position {motor.current_position}.")
        self._notify_state()

    @abc.abstractmethod
    def start(self):
        pass

    @abc.abstractmethod
    def stop(self):
        pass

    def get_state(self) -> TeleoperationState:
        return TeleoperationState(
            is_active=self.is_active,
            motor_configs=[copy(motor) for motor in self.motor_configs],
            last_update=self.last_update,
            error=self.error,
        )

    def move_motor(self, motor_name: str, target_position: float) -> MotorPositionChangedEvent:
        """
        移动单个关节 (Move a Single Joint)

        目标位置先被限制在关节范围内,再写入一次。
        The target is clamped to the joint range, then written once.

        返回值 (Returns):
            MotorPositionChangedEvent: 已发出的事件 / the emitted event
        """
        motor = self.get_motor_config(motor_name)
        event = self._write_motor(motor, motor.clamp(target_position))
        self._notify_state()
        return event

    def normalized_positions(self) -> list[float]:
        return [normalize_position(motor) for motor in self.motor_configs]

    def disconnect(self):
        if self.is_active:
            self.stop()
        if self.motors_bus.is_connected:
            self.motors_bus.disconnect()

    def _write_motor(self, motor: MotorConfig, target: float) -> MotorPositionChangedEvent:
        with self._bus_lock:
            previous = motor.current_position
            command_sent = self.clock()
            self.motors_bus.write_goal_position(motor.id, target)
            position_applied = self.clock()
            motor.current_position = target
            self.last_update = position_applied

            event = MotorPositionChangedEvent(
                motor_name=motor.name,
                motor_config=copy(motor),
                previous_position=previous,
                new_position=target,
                command_sent_timestamp=command_sent,
                position_applied_timestamp=position_applied,
            )
            # 在锁内通知,保证事件顺序与写入顺序一致
            # Listeners run under the lock so events arrive in write order
            for callback in list(self._change_listeners):
                callback(event)
        return event

    def _notify_state(self):
        if not self._state_listeners:
            return
        state = self.get_state()
        for callback in list(self._state_listeners):
            callback(state)
