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
录制数据集 (Record a Dataset)

功能说明 (Functionality):
    用键盘遥操作机械臂,把每次关节移动记录成帧,按固定帧率重采样后保存为 LeRobot 数据集,
    可选地导出 ZIP 压缩包并上传到 Hugging Face Hub。

    Records every joint move made through keyboard teleoperation, resamples the episodes to a
    fixed frame rate and saves them as a LeRobot dataset. Optionally writes a ZIP archive and
    uploads the dataset to the Hugging Face Hub.

Example:

```shell
python -m lerobot_arm.scripts.record \
    --robot.type=so100_follower \
    --robot.port=/dev/ttyACM0 \
    --dataset.repo_id=user/so100_cube \
    --dataset.single_task="Pick up the cube" \
    --dataset.num_episodes=5 \
    --dataset.episode_time_s=30 \
    --dataset.push_to_hub=true
```
"""

import logging
import time

import draccus
import tqdm
from termcolor import colored

from lerobot_arm.common.datasets.episodes import RecordingStateError
from lerobot_arm.common.datasets.hub import HubPublisher, PublishProgress
from lerobot_arm.common.datasets.lerobot_dataset import CODEBASE_VERSION, LeRobotDatasetExporter
from lerobot_arm.common.datasets.recorder import LeRobotDatasetRecorder
from lerobot_arm.common.robot_devices.motors.feetech import FeetechMotorsBus
from lerobot_arm.common.teleoperators.keyboard import KeyboardTeleoperator
from lerobot_arm.common.teleoperators.utils import make_teleoperator_from_config
from lerobot_arm.common.utils.utils import enter_pressed, init_logging
from lerobot_arm.configs.control import DatasetRecordConfig, RecordConfig
from lerobot_arm.configs.settings import JsonSettingsStore, SettingsStore
from lerobot_arm.scripts.teleoperate import load_calibration_if_exists, start_keyboard_listener


def wait_for_episode_end(recorder: LeRobotDatasetRecorder, teleoperator, episode_time_s: float):
    """Blocks until the episode time is over, Enter is pressed, or teleoperation stops."""
    start = time.perf_counter()
    while time.perf_counter() - start < episode_time_s:
        if not teleoperator.is_active or enter_pressed():
            return
        state = recorder.get_state()
        print(f"episode {state.episode_count - 1} | frames {state.frame_count} | {state.duration_s:.1f}s", end="\r")
        time.sleep(0.1)


def publish_with_progress(exporter: LeRobotDatasetExporter, token: str | None, private: bool) -> str:
    publisher = HubPublisher(codebase_version=CODEBASE_VERSION)
    progress_bar = tqdm.tqdm(desc=f"Uploading {exporter.repo_id}", unit="file")

    def update(progress: PublishProgress):
        progress_bar.total = progress.total_files
        progress_bar.n = progress.files_done
        progress_bar.refresh()

    publisher.on_progress(update)
    try:
        return exporter.push_to_hub(token=token, private=private, publisher=publisher).wait()
    finally:
        progress_bar.close()


def record_episodes(
    recorder: LeRobotDatasetRecorder, teleoperator, num_episodes: int, episode_time_s: float
) -> int:
    recorder.start()
    for episode in range(num_episodes):
        if episode > 0:
            recorder.next_episode()
        logging.info(colored(f"Recording episode {episode}", "yellow", attrs=["bold"]) + " (Enter ends it early)")
        wait_for_episode_end(recorder, teleoperator, episode_time_s)
        if not teleoperator.is_active:
            logging.warning("Teleoperation stopped, ending the recording.")
            break
    recorder.stop()
    return len(recorder.episodes)


def export_recording(recorder: LeRobotDatasetRecorder, dataset_cfg: DatasetRecordConfig) -> LeRobotDatasetExporter:
    """
    保存录制结果 (Save the Recording)

    重采样后不足一帧的 Episode 会被丢弃并记录警告,其余 Episode 保存到本地目录,
    可选地导出 ZIP 压缩包。

    Episodes that resample to less than one frame are dropped with a warning. The rest are saved
    to the local directory and optionally to a ZIP archive.

    异常 (Raises):
        RecordingStateError: 没有可导出的 Episode / no episode can be exported
    """
    dropped = recorder.drop_short_episodes(dataset_cfg.fps)
    if dropped:
        logging.warning(
            colored("Dropping episode(s)", "yellow", attrs=["bold"])
            + f" {dropped}: too short to resample at {dataset_cfg.fps} fps."
        )
    if not recorder.episodes:
        raise RecordingStateError("Nothing was recorded: every episode is too short to export.")

    exporter = recorder.export(repo_id=dataset_cfg.repo_id, license=dataset_cfg.license)
    logging.info(exporter)

    root = exporter.save_to_disk(dataset_cfg.root)
    logging.info(colored("Dataset saved to", "green", attrs=["bold"]) + f" {root}")
    if dataset_cfg.zip_path is not None:
        exporter.export_zip(dataset_cfg.zip_path)
    return exporter


@draccus.wrap()
def record(cfg: RecordConfig, settings_store: SettingsStore | None = None) -> LeRobotDatasetExporter:
    settings_store = settings_store if settings_store is not None else JsonSettingsStore()
    settings = settings_store.load()
    calibration = load_calibration_if_exists(cfg)

    motors_bus = FeetechMotorsBus(cfg.robot.make_motors_bus_config())
    motors_bus.connect()
    teleoperator = make_teleoperator_from_config(cfg.teleop, motors_bus, cfg.robot, calibration)
    if not isinstance(teleoperator, KeyboardTeleoperator):
        motors_bus.disconnect()
        raise ValueError(f"Only keyboard teleoperation can be recorded from the terminal (got '{cfg.teleop.type}').")

    recorder = LeRobotDatasetRecorder(
        [teleoperator], fps=cfg.dataset.fps, robot_type=cfg.robot.type, task=cfg.dataset.single_task
    )

    listener = None
    try:
        teleoperator.initialize()
        listener = start_keyboard_listener(teleoperator)
        teleoperator.start()
        record_episodes(recorder, teleoperator, cfg.dataset.num_episodes, cfg.dataset.episode_time_s)
    finally:
        if recorder.is_recording:
            recorder.stop()
        if listener is not None:
            listener.stop()
        teleoperator.disconnect()

    exporter = export_recording(recorder, cfg.dataset)

    if cfg.dataset.push_to_hub:
        url = publish_with_progress(exporter, settings.hf_token, cfg.dataset.private)
        logging.info(colored("Dataset published to", "green", attrs=["bold"]) + f" {url}")

    settings.repo_id = cfg.dataset.repo_id
    settings.last_port = cfg.robot.port
    settings_store.save(settings)
    return exporter


def main():
    init_logging()
    record()


if __name__ == "__main__":
    main()
