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

import threading

import pytest

from lerobot_arm.common.robot_devices.motors.feetech import STS_SERIES_CONTROL_TABLE
from lerobot_arm.common.robot_devices.robots import feetech_calibration
from lerobot_arm.common.robot_devices.robots.feetech_calibration import (
    ArmCalibrator,
    CalibrationAbort,
    MotorCalibration,
    get_continuous_rotation_motors,
    load_calibration,
    register_continuous_rotation_motor,
    save_calibration,
)


@pytest.fixture
def calibrator(motors_bus, robot_config):
    return ArmCalibrator(motors_bus, robot_config, settle_time_s=0, flush_wait_s=0, record_rate=1000)


def make_motion(mock_port, moves):
    """Stop predicate that applies one set of raw positions per call, then stops."""
    calls = {"n": 0}

    def should_stop():
        if calls["n"] >= len(moves):
            return True
        for motor_id, raw in moves[calls["n"]].items():
            mock_port.motors[motor_id].raw_position = raw
        calls["n"] += 1
        return False

    return should_stop


def test_homing_offsets_center_present_position(calibrator, mock_port):
    mock_port.motors[1].raw_position = 2500
    mock_port.motors[2].raw_position = 1000

    offsets = calibrator.set_homing_offsets()

    assert offsets["shoulder_pan"] == 453
    assert offsets["shoulder_lift"] == -1047
    assert offsets["elbow_flex"] == 0
    assert mock_port.motors[1].present_position == 2047
    assert mock_port.motors[2].present_position == 2047


def test_homing_from_raw_3000(calibrator, mock_port):
    mock_port.motors[1].raw_position = 3000

    offsets = calibrator.set_homing_offsets()

    assert offsets["shoulder_pan"] == 953
    assert mock_port.motors[1].homing_offset == 953
    assert mock_port.motors[1].present_position == 2047


def test_range_of_motion_with_continuous_rotation_override(calibrator, mock_port):
    should_stop = make_motion(mock_port, [{3: 1200, 5: 1200}, {3: 3400, 5: 3400}])

    range_mins, range_maxes = calibrator.record_ranges_of_motion(should_stop)
    assert (range_mins["wrist_roll"], range_maxes["wrist_roll"]) == (1200, 3400)

    calibrator.apply_continuous_rotation_overrides(range_mins, range_maxes)

    assert (range_mins["wrist_roll"], range_maxes["wrist_roll"]) == (0, 4095)
    assert (range_mins["elbow_flex"], range_maxes["elbow_flex"]) == (1200, 3400)


def test_homing_releases_torque(calibrator, mock_port):
    calibrator.set_homing_offsets()
    assert all(motor.get("Torque_Enable") == 0 for motor in mock_port.motors.values())


def test_full_run(calibrator, mock_port):
    mock_port.motors[1].raw_position = 2500
    should_stop = make_motion(mock_port, [{1: 2800, 5: 100}, {1: 2000, 5: 3000}])
    progress = []
    calibrator.on_progress(progress.append)

    calibration = calibrator.run(should_stop)

    assert calibration["shoulder_pan"] == MotorCalibration(
        id=1, drive_mode=0, homing_offset=453, range_min=1547, range_max=2347
    )
    assert calibration["elbow_flex"].range_min == calibration["elbow_flex"].range_max == 2047
    # 连续旋转关节使用整个范围 / Continuous rotation joints span the full range
    assert (calibration["wrist_roll"].range_min, calibration["wrist_roll"].range_max) == (0, 4095)

    min_addr = STS_SERIES_CONTROL_TABLE["Min_Position_Limit"][0]
    max_addr = STS_SERIES_CONTROL_TABLE["Max_Position_Limit"][0]
    assert mock_port.writes_to(1, min_addr) == [1547]
    assert mock_port.writes_to(1, max_addr) == [2347]
    assert progress[-1] == "Calibration complete"


def test_live_updates(calibrator, mock_port):
    updates = []
    calibrator.on_live_update(updates.append)
    calibrator.record_ranges_of_motion(make_motion(mock_port, [{3: 1500}, {3: 2500}]))

    assert len(updates) == 2
    assert updates[-1]["elbow_flex"].min == 1500
    assert updates[-1]["elbow_flex"].max == 2500
    assert updates[-1]["elbow_flex"].range == 1000
    assert updates[-1]["elbow_flex"].current == 2500


def test_failed_reads_are_skipped_during_recording(calibrator, mock_port):
    mock_port.drop_replies[2] = 3
    should_stop = make_motion(mock_port, [{2: 1800}])

    range_mins, range_maxes = calibrator.record_ranges_of_motion(should_stop)

    # 失败的读取不会被中位值代替 / Failed reads are not replaced by the mid-range value
    assert range_mins["shoulder_lift"] == 1800
    assert range_maxes["shoulder_lift"] == 1800


def test_motor_never_read_aborts(calibrator, mock_port):
    mock_port.silent_ids.add(3)
    with pytest.raises(CalibrationAbort, match="elbow_flex"):
        calibrator.record_ranges_of_motion(lambda: True)


def test_write_failure_aborts(calibrator, mock_port):
    mock_port.close()
    with pytest.raises(CalibrationAbort):
        calibrator.reset_homing_offsets()


def test_stop_ends_background_run(calibrator):
    recording = threading.Event()
    calibrator.on_live_update(lambda data: recording.set())

    future = calibrator.start()
    assert recording.wait(timeout=5)
    calibrator.stop()

    calibration = future.result(timeout=5)
    assert set(calibration) == {"shoulder_pan", "shoulder_lift", "elbow_flex", "wrist_flex", "wrist_roll", "gripper"}


def test_save_and_load(tmp_path):
    calibration = {"gripper": MotorCalibration(id=6, drive_mode=0, homing_offset=-12, range_min=1900, range_max=3100)}
    fpath = tmp_path / "calibration" / "arm.json"
    save_calibration(calibration, fpath)
    assert load_calibration(fpath) == calibration


def test_continuous_rotation_registry(monkeypatch):
    monkeypatch.setattr(feetech_calibration, "CONTINUOUS_ROTATION_MOTORS", {"so100": ["wrist_roll"]})
    assert get_continuous_rotation_motors("so100_follower") == {"wrist_roll"}
    assert get_continuous_rotation_motors("koch_follower") == set()

    register_continuous_rotation_motor("koch", "wrist_roll")
    assert get_continuous_rotation_motors("koch_leader") == {"wrist_roll"}
