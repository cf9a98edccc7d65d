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
释放舵机扭矩 (Release Motor Torque)

功能说明 (Functionality):
    关闭全部或指定舵机的扭矩,使机械臂可以用手自由移动。
    Turns the torque off on every motor, or on the selected ids, so the arm can be moved by hand.

Example:

```shell
python -m lerobot_arm.scripts.release_motors --robot.type=so100_follower --robot.port=/dev/ttyACM0
python -m lerobot_arm.scripts.release_motors --robot.port=/dev/ttyACM0 --motor_ids="[5, 6]"
```
"""

import logging

import draccus
from termcolor import colored

from lerobot_arm.common.robot_devices.motors.feetech import FeetechMotorsBus
from lerobot_arm.common.utils.utils import init_logging
from lerobot_arm.configs.control import ReleaseMotorsConfig


def release_motors(motors_bus: FeetechMotorsBus, motor_ids: list[int] | None = None) -> list[int]:
    """Releases `motor_ids`, or every motor of the bus when empty. Returns the released ids."""
    motor_ids = list(motor_ids) if motor_ids else motors_bus.motor_indices
    unknown = set(motor_ids) - set(motors_bus.motor_indices)
    if unknown:
        raise ValueError(f"Motor ids {sorted(unknown)} are not on this bus ({motors_bus.motor_indices}).")

    motors_bus.release_motors(motor_ids)
    return motor_ids


@draccus.wrap()
def main(cfg: ReleaseMotorsConfig):
    init_logging()
    motors_bus = FeetechMotorsBus(cfg.robot.make_motors_bus_config())
    motors_bus.connect()
    try:
        released = release_motors(motors_bus, cfg.motor_ids)
    finally:
        motors_bus.disconnect()
    logging.info(colored("Released motors:", "green", attrs=["bold"]) + f" {released}")


if __name__ == "__main__":
    main()
