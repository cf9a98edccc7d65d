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
键盘遥操作器 (Keyboard Teleoperator)

功能说明 (Functionality):
    以固定频率(默认 60Hz)轮询按键状态。只要按键处于按下状态,
    每个周期都会让对应关节移动一步(默认 8 个步数),不区分"首次按下"和"持续按住"。

    Polls the key states at a fixed rate (60Hz by default). While a key is held, every tick
    moves its joint by one step (8 raw steps by default). First presses and held keys are
    treated the same way.

每个周期的处理 (Per-Tick Processing):
    1. 移除超时(默认 10 秒未刷新)的按键 / evict keys not refreshed within the timeout (10s)
    2. 收集按下的按键 / collect the pressed keys
    3. 急停键按下时停止,不写入任何舵机 / stop without writing when the stop key is pressed
    4. 对每个关节累加 direction × step_size,起点为当前位置
       sum direction × step_size per joint, starting from its current position
    5. 把累加结果限制在关节范围内 / clamp the sum to the joint range
    6. 只写入目标发生变化的关节,并发出事件 / write and emit only joints whose target changed

使用示例 (Usage Example):
    ```python
    teleop = KeyboardTeleoperator(motors_bus, motor_configs, SO100_KEYBOARD_CONTROLS)
    teleop.initialize()
    teleop.start()
    teleop.update_key_state("ArrowUp", True)   # 由键盘监听线程调用 / called by a keyboard listener
    ...
    teleop.stop()
    ```
"""

import logging
import threading
import time
from typing import Callable

from lerobot_arm.common.robot_devices.motors.feetech import FeetechMotorsBus
from lerobot_arm.common.teleoperators.teleoperator import (
    KeyBinding,
    KeyState,
    MotorConfig,
    TeleoperationState,
    Teleoperator,
)
from lerobot_arm.common.utils.scheduler import PeriodicTask

EMERGENCY_STOP = "emergency_stop"


class KeyboardTeleoperator(Teleoperator):
    def __init__(
        self,
        motors_bus: FeetechMotorsBus,
        motor_configs: list[MotorConfig],
        key_bindings: dict[str, KeyBinding],
        step_size: int = 8,
        update_rate: float = 60,
        key_timeout_s: float = 10.0,
        stop_key: str = "Escape",
        clock: Callable[[], float] = time.perf_counter,
    ):
        super().__init__(motors_bus, motor_configs, clock=clock)
        self.key_bindings = dict(key_bindings)
        self.step_size = step_size
        self.update_rate = update_rate
        self.key_timeout_s = key_timeout_s
        self.stop_key = stop_key

        self.key_states: dict[str, KeyState] = {}
        self._keys_lock = threading.Lock()
        self._task: PeriodicTask | None = None

    def update_key_state(self, key: str, pressed: bool):
        """Records a key press or release. Safe to call from any thread."""
        with self._keys_lock:
            self.key_states[key] = KeyState(pressed=pressed, timestamp=self.clock())

    def start(self):
        if self.is_active:
            return

        self.is_active = True
        self.error = None
        self._task = PeriodicTask(
            self.tick,
            self.update_rate,
            name="keyboard-teleoperator",
            on_error=self._on_loop_error,
            clock=self.clock,
        )
        self._task.start()
        logging.info(f"Keyboard teleoperation started at {self.update_rate}Hz.")
        self._notify_state()

    def stop(self):
        """
        停止控制循环 (Stop the Control Loop)

        正在执行的周期会先完成。如果循环因错误终止,该错误在这里重新抛出。
        The tick in progress finishes first. If the loop ended because of an error, that
        error is raised again here.
        """
        task, self._task = self._task, None
        if task is not None:
            task.stop()

        was_active = self.is_active
        self.is_active = False
        with self._keys_lock:
            self.key_states.clear()
        if was_active:
            logging.info("Keyboard teleoperation stopped.")
            self._notify_state()

        if task is not None and task.error is not None:
            raise task.error

    def get_state(self) -> TeleoperationState:
        state = super().get_state()
        with self._keys_lock:
            state.key_states = dict(self.key_states)
        return state

    def tick(self, now: float | None = None) -> list[str]:
        """
        执行一个控制周期 (Run One Control Tick)

        返回值 (Returns):
            list[str]: 本周期写入的关节名称 / names of the joints written during this tick
        """
        if now is None:
            now = self.clock()

        with self._keys_lock:
            for key in [k for k, state in self.key_states.items() if now - state.timestamp > self.key_timeout_s]:
                del self.key_states[key]
            active_keys = [key for key, state in self.key_states.items() if state.pressed]

        if self.stop_key in active_keys or any(
            key in self.key_bindings and self.key_bindings[key].motor == EMERGENCY_STOP for key in active_keys
        ):
            logging.warning("Emergency stop requested.")
            self.stop()
            return []

        targets: dict[str, float] = {}
        for key in active_keys:
            binding = self.key_bindings.get(key)
            if binding is None:
                continue
            try:
                motor = self.get_motor_config(binding.motor)
            except KeyError:
                logging.warning(f"Key '{key}' is bound to unknown motor '{binding.motor}'.")
                continue
            targets[motor.name] = targets.get(motor.name, motor.current_position) + binding.direction * self.step_size

        moved = []
        for motor_name, target in targets.items():
            motor = self.get_motor_config(motor_name)
            target = motor.clamp(target)
            if target != motor.current_position:
                self._write_motor(motor, target)
                moved.append(motor_name)

        if moved:
            self._notify_state()
        return moved

    def _on_loop_error(self, error: Exception):
        self.error = error
        self.is_active = False
        self._notify_state()
