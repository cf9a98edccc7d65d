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
from lerobot_arm.common.robot_devices.motors.feetech import MODEL_RESOLUTION, FeetechMotorsBus
from lerobot_arm.common.robot_devices.robots.configs import FeetechArmConfig
from lerobot_arm.common.robot_devices.robots.feetech_calibration import MotorCalibration
from lerobot_arm.common.teleoperators.configs import (
    DirectTeleoperatorConfig,
    KeyboardTeleoperatorConfig,
    TeleoperatorConfig,
)
from lerobot_arm.common.teleoperators.direct import DirectTeleoperator
from lerobot_arm.common.teleoperators.keyboard import KeyboardTeleoperator
from lerobot_arm.common.teleoperators.teleoperator import MotorConfig, Teleoperator


def make_motor_configs(
    robot_config: FeetechArmConfig,
    calibration: dict[str, MotorCalibration] | None = None,
) -> list[MotorConfig]:
    """Builds joint configs from the calibrated ranges, or the full register range without calibration."""
    motor_configs = []
    norm_modes = robot_config.norm_modes
    for name, (motor_id, model) in robot_config.motors.items():
        if calibration is not None and name in calibration:
            range_min, range_max = calibration[name].range_min, calibration[name].range_max
        else:
            range_min, range_max = 0, MODEL_RESOLUTION[model] - 1
        motor_configs.append(
            MotorConfig(
                id=motor_id,
                name=name,
                current_position=(range_min + range_max) // 2,
                min_position=range_min,
                max_position=range_max,
                norm_mode=norm_modes[name],
            )
        )
    return motor_configs


def make_teleoperator_from_config(
    config: TeleoperatorConfig,
    motors_bus: FeetechMotorsBus,
    robot_config: FeetechArmConfig,
    calibration: dict[str, MotorCalibration] | None = None,
) -> Teleoperator:
    motor_configs = make_motor_configs(robot_config, calibration)

    if isinstance(config, KeyboardTeleoperatorConfig):
        return KeyboardTeleoperator(
            motors_bus,
            motor_configs,
            robot_config.keyboard_controls,
            step_size=config.step_size,
            update_rate=config.update_rate,
            key_timeout_s=config.key_timeout_s,
            stop_key=config.stop_key,
        )
    elif isinstance(config, DirectTeleoperatorConfig):
        return DirectTeleoperator(motors_bus, motor_configs)
    else:
        raise ValueError(f"The teleoperator type '{config.type}' is not valid.")
