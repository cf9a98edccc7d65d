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
校准机械臂 (Calibrate the Arm)

功能说明 (Functionality):
    交互式校准流程:
    1. 把机械臂摆到每个关节的中间位置,按回车写入归零偏移
    2. 依次把每个关节转过它的全部活动范围,按回车结束记录
    3. 写入位置限位并把校准结果保存为 JSON

    Interactive calibration:
    1. Put every joint in the middle of its range and press Enter to write the homing offsets
    2. Move every joint through its full range of motion, press Enter to stop recording
    3. The position limits are written and the calibration is saved as JSON

Example:

```shell
python -m lerobot_arm.scripts.calibrate \
    --robot.type=so100_follower \
    --robot.port=/dev/ttyACM0 \
    --robot.id=my_arm
```
"""

import logging
import time

import draccus
from termcolor import colored

from lerobot_arm.common.robot_devices.motors.feetech import FeetechMotorsBus
from lerobot_arm.common.robot_devices.robots.feetech_calibration import (
    ArmCalibrator,
    CalibrationAbort,
    LiveCalibrationData,
    MotorCalibration,
    save_calibration,
)
from lerobot_arm.common.utils.utils import enter_pressed, init_logging
from lerobot_arm.configs.control import CalibrateConfig
from lerobot_arm.configs.settings import JsonSettingsStore, SettingsStore


def format_live_table(live_data: dict[str, LiveCalibrationData]) -> str:
    lines = [f"{'NAME':<15} | {'MIN':>6} | {'POS':>6} | {'MAX':>6} | {'RANGE':>6}"]
    for name, data in live_data.items():
        lines.append(f"{name:<15} | {data.min:>6} | {data.current:>6} | {data.max:>6} | {data.range:>6}")
    return "\n".join(lines)


@draccus.wrap()
def calibrate(
    cfg: CalibrateConfig, settings_store: SettingsStore | None = None
) -> dict[str, MotorCalibration]:
    logging.info(colored("Calibrating:", "yellow", attrs=["bold"]) + f" {cfg.robot.type} '{cfg.robot.id}'")

    motors_bus = FeetechMotorsBus(cfg.robot.make_motors_bus_config())
    motors_bus.connect()
    try:
        calibrator = ArmCalibrator(
            motors_bus, cfg.robot, settle_time_s=cfg.settle_time_s, record_rate=cfg.record_rate
        )
        calibrator.on_progress(lambda message: logging.info(message))

        last_print = [0.0]

        def print_live(live_data: dict[str, LiveCalibrationData]):
            # 终端每秒刷新一次 / Refresh the terminal once per second
            now = time.perf_counter()
            if now - last_print[0] >= 1.0:
                last_print[0] = now
                print("\n" + format_live_table(live_data))

        calibrator.on_live_update(print_live)

        input(f"Move {cfg.robot.type} to the middle of its range of motion and press ENTER....")
        print("Move every joint through its entire range of motion. Press ENTER to stop recording...")
        calibration = calibrator.run(should_stop=enter_pressed)
    except CalibrationAbort as e:
        logging.error(colored(f"Calibration aborted: {e}", "red", attrs=["bold"]))
        raise
    finally:
        motors_bus.disconnect()

    save_calibration(calibration, cfg.robot.calibration_fpath)
    logging.info(colored("Calibration saved to", "green", attrs=["bold"]) + f" {cfg.robot.calibration_fpath}")

    settings_store = settings_store if settings_store is not None else JsonSettingsStore()
    settings = settings_store.load()
    settings.robot_id = cfg.robot.id
    settings.last_port = cfg.robot.port
    settings_store.save(settings)
    return calibration


def main():
    init_logging()
    calibrate()


if __name__ == "__main__":
    main()
