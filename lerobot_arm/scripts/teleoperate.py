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
遥操作机械臂 (Teleoperate the Arm)

功能说明 (Functionality):
    用键盘控制机械臂。方向键控制肩部,W/S 控制肘部,A/D 控制腕部俯仰,Q/E 控制腕部旋转,
    O/C 控制夹爪,Esc 急停。

    Drives the arm from the keyboard. Arrows move the shoulder, W/S the elbow, A/D the wrist
    flex, Q/E the wrist roll and O/C the gripper. Escape is the emergency stop.

Example:

```shell
python -m lerobot_arm.scripts.teleoperate \
    --robot.type=so100_follower \
    --robot.port=/dev/ttyACM0 \
    --teleop.type=keyboard \
    --teleop.step_size=8
```
"""

import logging
import time

import draccus
from termcolor import colored

from lerobot_arm.common.robot_devices.motors.feetech import FeetechMotorsBus
from lerobot_arm.common.robot_devices.robots.feetech_calibration import MotorCalibration, load_calibration
from lerobot_arm.common.teleoperators.keyboard import KeyboardTeleoperator
from lerobot_arm.common.teleoperators.teleoperator import Teleoperator
from lerobot_arm.common.teleoperators.utils import make_teleoperator_from_config
from lerobot_arm.common.utils.utils import init_logging, is_headless
from lerobot_arm.configs.control import TeleoperateConfig

# pynput 特殊键名 -> 绑定使用的键名 / pynput special key name -> key name used by the bindings
PYNPUT_KEY_NAMES = {
    "up": "ArrowUp",
    "down": "ArrowDown",
    "left": "ArrowLeft",
    "right": "ArrowRight",
    "esc": "Escape",
    "space": " ",
    "enter": "Enter",
}


def key_to_name(key) -> str | None:
    """Name of a pynput key as used in the key bindings, None for keys without one."""
    char = getattr(key, "char", None)
    if char is not None:
        return char.lower()
    name = getattr(key, "name", None)
    if name is None:
        return None
    return PYNPUT_KEY_NAMES.get(name, name)


def start_keyboard_listener(teleoperator: KeyboardTeleoperator):
    """
    启动键盘监听器 (Start the Keyboard Listener)

    按键事件在 pynput 的线程中转发给遥操作器。无显示环境下无法监听键盘。
    Key events are forwarded to the teleoperator from the pynput thread. Keyboard listening is
    not available without a display.
    """
    if is_headless():
        raise OSError(
            "No display was detected, keyboard teleoperation needs one. "
            "Set the DISPLAY environment variable or run from a desktop session."
        )

    # Only import pynput if not in a headless environment
    from pynput import keyboard

    def on_press(key):
        name = key_to_name(key)
        if name is not None:
            teleoperator.update_key_state(name, True)

    def on_release(key):
        name = key_to_name(key)
        if name is not None:
            teleoperator.update_key_state(name, False)

    listener = keyboard.Listener(on_press=on_press, on_release=on_release)
    listener.start()
    return listener


def load_calibration_if_exists(cfg) -> dict[str, MotorCalibration] | None:
    fpath = cfg.robot.calibration_fpath
    if not fpath.is_file():
        logging.warning(
            colored(f"No calibration found at {fpath}, using the full register range.", "yellow")
        )
        return None
    return load_calibration(fpath)


def format_positions(teleoperator: Teleoperator) -> str:
    return " | ".join(f"{motor.name}: {motor.current_position:>6.0f}" for motor in teleoperator.motor_configs)


@draccus.wrap()
def teleoperate(cfg: TeleoperateConfig):
    calibration = load_calibration_if_exists(cfg)

    motors_bus = FeetechMotorsBus(cfg.robot.make_motors_bus_config())
    motors_bus.connect()
    teleoperator = make_teleoperator_from_config(cfg.teleop, motors_bus, cfg.robot, calibration)
    if not isinstance(teleoperator, KeyboardTeleoperator):
        motors_bus.disconnect()
        raise ValueError(f"Only keyboard teleoperation can be driven from the terminal (got '{cfg.teleop.type}').")

    listener = None
    try:
        teleoperator.initialize()
        listener = start_keyboard_listener(teleoperator)
        teleoperator.start()
        logging.info(colored("Teleoperation started. Press Esc to stop.", "green", attrs=["bold"]))

        start = time.perf_counter()
        while teleoperator.is_active:
            if cfg.teleop_time_s is not None and time.perf_counter() - start >= cfg.teleop_time_s:
                break
            print(format_positions(teleoperator), end="\r")
            time.sleep(1 / cfg.display_rate)

        if teleoperator.error is not None:
            raise teleoperator.error
    except KeyboardInterrupt:
        logging.info("Interrupted by the user.")
    finally:
        if listener is not None:
            listener.stop()
        teleoperator.disconnect()


def main():
    init_logging()
    teleoperate()


if __name__ == "__main__":
    main()
