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
Feetech 机械臂校准 (Feetech Arm Calibration)

功能说明 (Functionality):
    计算每个关节的归零偏移和运动范围,并写入舵机寄存器。

    Computes the homing offset and range of motion of every joint and writes them to the
    motor registers.

校准流程 (Calibration Stages):
    1. 释放扭矩并把 Homing_Offset 清零,等待舵机稳定,再做一次空读刷新位置
       Release torque and zero Homing_Offset, let the motors settle, then do a dummy read
    2. 读取当前位置,offset = position - 2047,立即以符号-幅值编码写回
       Read positions, offset = position - 2047, written back at once in sign-magnitude
    3. 约 20Hz 记录运动范围,直到停止条件成立;每次迭代通知实时数据
       Record the range of motion at ~20Hz until stopped, with a live update per iteration
    4. 对连续旋转关节(如 wrist_roll)强制使用完整范围 [0, 4095]
       Force the full range [0, 4095] on continuous-rotation joints (e.g. wrist_roll)
    5. 写入 Min/Max_Position_Limit 寄存器 / Write the Min/Max_Position_Limit registers
    6. 汇总每个关节的 MotorCalibration / Compile one MotorCalibration per joint

错误处理 (Error Handling):
    阶段 1、2、5 中的寄存器写入失败会抛出 CalibrationAbort,已写入的偏移不会回滚。
    阶段 3 中的单次读取失败会被记录并在下一次迭代重试。

    A register write failure in stages 1, 2 or 5 raises CalibrationAbort. Offsets already
    written are not rolled back. A failed read in stage 3 is logged and retried on the next
    iteration.

使用示例 (Usage Example):
    ```python
    calibrator = ArmCalibrator(motors_bus, robot_config)
    calibrator.on_live_update(lambda data: print(data["gripper"].range))
    calibration = calibrator.run(should_stop=enter_pressed)
    save_calibration(calibration, robot_config.calibration_fpath)
    ```
"""

import json
import logging
import threading
import time
from concurrent.futures import Future
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Callable

from lerobot_arm.common.robot_devices.motors.feetech import FeetechMotorsBus
from lerobot_arm.common.robot_devices.robots.configs import FeetechArmConfig
from lerobot_arm.common.robot_devices.utils import ProtocolError

# 连续旋转关节,按机器人类型前缀匹配 / Continuous-rotation joints, matched by robot type prefix
CONTINUOUS_ROTATION_MOTORS: dict[str, list[str]] = {
    "so100": ["wrist_roll"],
    "so101": ["wrist_roll"],
}


class CalibrationAbort(Exception):
    def __init__(self, message="Calibration was aborted"):
        self.message = message
        super().__init__(self.message)


@dataclass(frozen=True)
class MotorCalibration:
    id: int
    drive_mode: int
    homing_offset: int
    range_min: int
    range_max: int


@dataclass(frozen=True)
class LiveCalibrationData:
    current: int
    min: int
    max: int
    range: int


def register_continuous_rotation_motor(robot_prefix: str, motor_name: str):
    motors = CONTINUOUS_ROTATION_MOTORS.setdefault(robot_prefix, [])
    if motor_name not in motors:
        motors.append(motor_name)


def get_continuous_rotation_motors(robot_type: str) -> set[str]:
    motors = set()
    for prefix, names in CONTINUOUS_ROTATION_MOTORS.items():
        if robot_type.startswith(prefix):
            motors.update(names)
    return motors


class ArmCalibrator:
    """
    机械臂校准器 (Arm Calibrator)

    属性说明 (Attributes):
        motors_bus (FeetechMotorsBus): 已连接的舵机总线 / Connected motor bus
        robot_config (FeetechArmConfig): 舵机名称、ID 和驱动方向 / Motor names, ids and drive modes
        settle_time_s (float): 清零偏移后的等待时间 / Wait after zeroing the offsets
        flush_wait_s (float): 空读之后的等待时间 / Wait after the dummy read
        record_rate (float): 记录运动范围的频率(Hz) / Range recording rate (Hz)

    回调 (Callbacks):
        on_progress(callback): 每个阶段开始时收到一条文字消息 / a text message per stage
        on_live_update(callback): 收到 {舵机名称: LiveCalibrationData} / {motor_name: LiveCalibrationData}
    """

    def __init__(
        self,
        motors_bus: FeetechMotorsBus,
        robot_config: FeetechArmConfig,
        settle_time_s: float = 1.0,
        flush_wait_s: float = 0.2,
        record_rate: float = 20,
    ):
        self.motors_bus = motors_bus
        self.robot_config = robot_config
        self.settle_time_s = settle_time_s
        self.flush_wait_s = flush_wait_s
        self.record_rate = record_rate

        self.motor_names = robot_config.motor_names
        self.motor_ids = robot_config.motor_ids

        self._progress_listeners: list[Callable[[str], None]] = []
        self._live_listeners: list[Callable[[dict[str, LiveCalibrationData]], None]] = []
        self._stop_event = threading.Event()

    def on_progress(self, callback: Callable[[str], None]):
        self._progress_listeners.append(callback)

    def on_live_update(self, callback: Callable[[dict[str, LiveCalibrationData]], None]):
        self._live_listeners.append(callback)

    def stop(self):
        """Ends range recording. Checked once per recording iteration."""
        self._stop_event.set()

    def _progress(self, message: str):
        logging.info(message)
        for callback in list(self._progress_listeners):
            callback(message)

    def _write_or_abort(self, description: str, write_fn: Callable[[], None]):
        try:
            write_fn()
        except (ConnectionError, ProtocolError, ValueError) as e:
            raise CalibrationAbort(f"Failed to {description}: {e}") from e

    def reset_homing_offsets(self):
        for name, motor_id in zip(self.motor_names, self.motor_ids, strict=True):
            self._write_or_abort(f"release torque of '{name}'", lambda i=motor_id: self.motors_bus.release_motor(i))
            self._write_or_abort(
                f"reset homing offset of '{name}'", lambda i=motor_id: self.motors_bus.write_homing_offset(i, 0)
            )

    def set_homing_offsets(self) -> dict[str, int]:
        """
        设置归零偏移 (Set Homing Offsets)

        当前位置被定义为中位值 (resolution-1)//2,偏移立即写入舵机。
        The present position becomes the mid-range value (resolution-1)//2. Offsets are written
        to the motors immediately.
        """
        self.reset_homing_offsets()
        time.sleep(self.settle_time_s)

        # 空读,刷新舵机缓存的位置 / Dummy read to flush positions cached by the motors
        self.motors_bus.read_all_positions(self.motor_ids)
        time.sleep(self.flush_wait_s)

        positions = self.motors_bus.read_all_positions(self.motor_ids)

        homing_offsets = {}
        for name, motor_id, position in zip(self.motor_names, self.motor_ids, positions, strict=True):
            half_turn = self.motors_bus.get_fallback_position(motor_id)
            homing_offsets[name] = position - half_turn
            self._write_or_abort(
                f"write homing offset of '{name}'",
                lambda i=motor_id, offset=homing_offsets[name]: self.motors_bus.write_homing_offset(i, offset),
            )
        return homing_offsets

    def record_ranges_of_motion(
        self, should_stop: Callable[[], bool] | None = None
    ) -> tuple[dict[str, int], dict[str, int]]:
        """
        记录运动范围 (Record Ranges of Motion)

        参数说明 (Parameters):
            should_stop (Callable[[], bool] | None):
                每次迭代检查一次的停止条件;`stop()` 也会结束记录
                Stop predicate checked once per iteration. `stop()` also ends the recording.

        返回值 (Returns):
            tuple[dict[str, int], dict[str, int]]: (range_mins, range_maxes)
        """
        range_mins: dict[str, int] = {}
        range_maxes: dict[str, int] = {}

        def update(name, position):
            range_mins[name] = min(range_mins.get(name, position), position)
            range_maxes[name] = max(range_maxes.get(name, position), position)

        for name, motor_id in zip(self.motor_names, self.motor_ids, strict=True):
            position = self.motors_bus.read_position(motor_id)
            if position is not None:
                update(name, position)

        period_s = 1 / self.record_rate
        while not self._stop_event.is_set() and not (should_stop is not None and should_stop()):
            currents = {}
            for name, motor_id in zip(self.motor_names, self.motor_ids, strict=True):
                position = self.motors_bus.read_position(motor_id)
                if position is None:
                    # 这次迭代跳过该舵机 / Skip this motor for this iteration
                    continue
                currents[name] = position
                update(name, position)

            if self._live_listeners and currents:
                live_data = {
                    name: LiveCalibrationData(
                        current=current,
                        min=range_mins[name],
                        max=range_maxes[name],
                        range=range_maxes[name] - range_mins[name],
                    )
                    for name, current in currents.items()
                }
                for callback in list(self._live_listeners):
                    callback(live_data)

            self._stop_event.wait(period_s)

        missing = [name for name in self.motor_names if name not in range_mins]
        if missing:
            raise CalibrationAbort(f"No position could be read from {missing} while recording ranges of motion.")

        return range_mins, range_maxes

    def apply_continuous_rotation_overrides(self, range_mins: dict[str, int], range_maxes: dict[str, int]):
        for name in get_continuous_rotation_motors(self.robot_config.type):
            if name in range_mins:
                motor_id = self.motor_ids[self.motor_names.index(name)]
                range_mins[name] = 0
                range_maxes[name] = self.motors_bus.get_resolution(motor_id) - 1

    def write_position_limits(self, range_mins: dict[str, int], range_maxes: dict[str, int]):
        for name, motor_id in zip(self.motor_names, self.motor_ids, strict=True):
            self._write_or_abort(
                f"write position limits of '{name}'",
                lambda i=motor_id, n=name: self.motors_bus.write_position_limits(i, range_mins[n], range_maxes[n]),
            )

    def run(self, should_stop: Callable[[], bool] | None = None) -> dict[str, MotorCalibration]:
        self._progress("Setting motor homing offsets")
        homing_offsets = self.set_homing_offsets()

        self._progress("Recording ranges of motion. Move every joint through its full range.")
        try:
            range_mins, range_maxes = self.record_ranges_of_motion(should_stop)
        finally:
            # 允许再次运行 / Allow another run
            self._stop_event.clear()

        self.apply_continuous_rotation_overrides(range_mins, range_maxes)

        self._progress("Writing position limits")
        self.write_position_limits(range_mins, range_maxes)

        calibration = {
            name: MotorCalibration(
                id=motor_id,
                drive_mode=drive_mode,
                homing_offset=homing_offsets[name],
                range_min=range_mins[name],
                range_max=range_maxes[name],
            )
            for name, motor_id, drive_mode in zip(
                self.motor_names, self.motor_ids, self.robot_config.drive_modes, strict=True
            )
        }
        self._progress("Calibration complete")
        return calibration

    def start(self, should_stop: Callable[[], bool] | None = None) -> Future:
        """Runs the calibration on a background thread. Call `stop()` to end range recording."""
        future: Future = Future()

        def target():
            try:
                future.set_result(self.run(should_stop))
            except Exception as e:
                future.set_exception(e)

        threading.Thread(target=target, name="arm-calibration", daemon=True).start()
        return future


def save_calibration(calibration: dict[str, MotorCalibration], fpath: Path):
    fpath = Path(fpath)
    fpath.parent.mkdir(parents=True, exist_ok=True)
    with open(fpath, "w") as f:
        json.dump({name: asdict(motor) for name, motor in calibration.items()}, f, indent=4)


def load_calibration(fpath: Path) -> dict[str, MotorCalibration]:
    with open(fpath) as f:
        return {name: MotorCalibration(**motor) for name, motor in json.load(f).items()}
