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

import logging
from types import SimpleNamespace

import pytest

from lerobot_arm.common.datasets.episodes import RecordingStateError
from lerobot_arm.common.datasets.recorder import LeRobotDatasetRecorder
from lerobot_arm.common.robot_devices.robots.feetech_calibration import LiveCalibrationData
from lerobot_arm.common.teleoperators.direct import DirectTeleoperator
from lerobot_arm.common.teleoperators.utils import make_motor_configs
from lerobot_arm.configs.control import DatasetRecordConfig
from lerobot_arm.scripts.calibrate import format_live_table
from lerobot_arm.scripts.find_motors_bus_port import detect_removed_port
from lerobot_arm.scripts.record import export_recording
from lerobot_arm.scripts.release_motors import release_motors
from lerobot_arm.scripts.teleoperate import key_to_name


@pytest.mark.parametrize(
    "key, name",
    [
        (SimpleNamespace(char="W"), "w"),
        (SimpleNamespace(char=None, name="up"), "ArrowUp"),
        (SimpleNamespace(char=None, name="esc"), "Escape"),
        (SimpleNamespace(char=None, name="shift"), "shift"),
        (SimpleNamespace(), None),
    ],
)
def test_key_to_name(key, name):
    assert key_to_name(key) == name


def test_detect_removed_port():
    assert detect_removed_port(["/dev/ttyACM0", "/dev/ttyS0"], ["/dev/ttyS0"]) == "/dev/ttyACM0"


@pytest.mark.parametrize("after", [["/dev/a", "/dev/b"], []])
def test_detect_removed_port_needs_exactly_one_difference(after):
    with pytest.raises(OSError):
        detect_removed_port(["/dev/a", "/dev/b"], after)


def test_release_selected_motors(motors_bus, mock_port):
    assert release_motors(motors_bus, [2]) == [2]
    assert mock_port.motors[2].get("Torque_Enable") == 0
    assert mock_port.motors[1].get("Torque_Enable") == 1


def test_release_all_motors(motors_bus, mock_port):
    assert release_motors(motors_bus) == [1, 2, 3, 4, 5, 6]
    assert all(motor.get("Torque_Enable") == 0 for motor in mock_port.motors.values())


def test_release_unknown_motor(motors_bus):
    with pytest.raises(ValueError):
        release_motors(motors_bus, [42])


def test_format_live_table():
    table = format_live_table({"gripper": LiveCalibrationData(current=2000, min=1500, max=2500, range=1000)})
    lines = table.splitlines()
    assert lines[0].startswith("NAME")
    assert "gripper" in lines[1]
    assert "1000" in lines[1]


@pytest.fixture
def recorder(motors_bus, robot_config, clock):
    teleop = DirectTeleoperator(motors_bus, make_motor_configs(robot_config), clock=clock)
    teleop.start()
    recorder = LeRobotDatasetRecorder([teleop], fps=10, task="Pick up the cube", clock=clock)
    return recorder, teleop


def test_export_recording_drops_an_idle_last_episode(recorder, clock, tmp_path, caplog):
    recorder, teleop = recorder
    recorder.start()
    for position in [2100, 2200, 2300]:
        clock.advance(0.5)
        teleop.move_motor("gripper", position)
    recorder.next_episode()
    clock.advance(5.0)
    recorder.stop()

    dataset_cfg = DatasetRecordConfig(repo_id="user/so100_cube", fps=10, root=tmp_path / "dataset")
    with caplog.at_level(logging.WARNING):
        exporter = export_recording(recorder, dataset_cfg)

    assert "Dropping episode(s)" in caplog.text
    assert exporter.num_episodes == 1
    assert (tmp_path / "dataset" / "data" / "chunk-000" / "episode_000000.parquet").exists()
    assert not (tmp_path / "dataset" / "data" / "chunk-000" / "episode_000001.parquet").exists()


def test_export_recording_without_any_motion_raises(recorder, clock, tmp_path):
    recorder, teleop = recorder
    recorder.start()
    clock.advance(1.0)
    teleop.move_motor("gripper", 2100)
    recorder.stop()

    dataset_cfg = DatasetRecordConfig(repo_id="user/so100_cube", fps=10, root=tmp_path / "dataset")
    with pytest.raises(RecordingStateError, match="Nothing was recorded"):
        export_recording(recorder, dataset_cfg)
    assert not (tmp_path / "dataset").exists()
