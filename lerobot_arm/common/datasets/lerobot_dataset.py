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
LeRobot 数据集导出器 (LeRobot Dataset Exporter)

功能说明 (Functionality):
    把重采样后的 Episode 和相机视频片段转换成 LeRobot v2.1 格式的数据集文件,
    并提供三种输出方式:ZIP 压缩包、本地目录、Hugging Face Hub。

    Turns resampled episodes and camera video segments into the files of a LeRobot v2.1
    dataset, and writes them out in one of three ways: a ZIP archive, a local directory, or the
    Hugging Face Hub.

主要组件 (Main Components):
    - CODEBASE_VERSION: 数据集格式版本 / dataset format version
    - LeRobotDatasetExporter: 生成数据集文件 / generates the dataset files
        - export_blobs(): 内存中的文件列表 / in-memory list of files
        - to_zip() / export_zip(): ZIP 压缩包 / ZIP archive
        - save_to_disk(): 写入本地目录 / writes a local directory
        - push_to_hub(): 后台上传到 Hub / uploads to the Hub in the background

使用示例 (Usage Example):
    ```python
    exporter = LeRobotDatasetExporter(
        repo_id="user/so100_cube",
        episodes=recorder.get_interpolated_episodes(),
        fps=30,
        robot_type="so100_follower",
        motor_names=recorder.motor_names,
        tasks=["Pick up the cube"],
    )
    exporter.save_to_disk()
    ```
"""

import io
import logging
import zipfile
from pathlib import Path

import datasets
import numpy as np

from lerobot_arm.common.constants import ACTION, HF_LEROBOT_HOME, OBS_ROBOT
from lerobot_arm.common.datasets.compute_stats import aggregate_stats, compute_episode_stats
from lerobot_arm.common.datasets.episodes import IndexedFrame
from lerobot_arm.common.datasets.hub import DatasetFile, HubPublisher, PublishHandle
from lerobot_arm.common.datasets.utils import (
    DEFAULT_FEATURES,
    EPISODES_PATH,
    INFO_PATH,
    STATS_PATH,
    TASKS_PATH,
    create_dataset_info,
    create_lerobot_dataset_card,
    dumps_json,
    get_camera_features,
    get_data_file_path,
    get_episode_chunk,
    get_hf_features_from_features,
    get_motor_features,
    get_video_file_path,
    get_video_key,
    serialize_dict,
)
from lerobot_arm.common.robot_devices.cameras.configs import CameraConfig

# 当前代码库版本 / Current codebase version
CODEBASE_VERSION = "v2.1"


class LeRobotDatasetExporter:
    def __init__(
        self,
        repo_id: str,
        episodes: list[list[IndexedFrame]],
        fps: int,
        robot_type: str | None,
        motor_names: list[str],
        tasks: list[str] | None = None,
        video_segments: dict[tuple[int, str], bytes] | None = None,
        camera_configs: dict[str, CameraConfig] | None = None,
        license: str | None = "apache-2.0",
    ):
        """
        初始化导出器 (Initialize the Exporter)

        参数说明 (Parameters):
            repo_id (str): 数据集 id,例如 "user/so100_cube" / dataset id, e.g. "user/so100_cube"
            episodes (list[list[IndexedFrame]]): 每个 Episode 的重采样帧 / resampled frames of each episode
            fps (int): 重采样帧率 / resampling rate
            robot_type (str | None): 写入 info.json 的机器人类型 / robot type written to info.json
            motor_names (list[str]): 关节名称,决定向量的顺序 / joint names, in vector order
            tasks (list[str] | None): 任务描述,下标即 task_index / task descriptions, indexed by task_index
            video_segments (dict): (episode_index, 相机名) -> 视频数据
                                   (episode_index, camera name) -> encoded video
            camera_configs (dict): 相机名 -> 相机配置 / camera name -> camera config
            license (str | None): 数据集卡片中的许可证 / license of the dataset card

        异常 (Raises):
            ValueError: 没有 Episode、Episode 为空、task_index 不在任务表中、或相机使用了不同的视频容器
                        no episodes, an empty episode, a task_index missing from the task table, or
                        cameras using different video containers
        """
        if len(episodes) == 0:
            raise ValueError("There are no episodes to export.")
        for i, frames in enumerate(episodes):
            if len(frames) == 0:
                raise ValueError(f"Episode {i} has no frames to export.")

        self.repo_id = repo_id
        self.episodes = episodes
        self.fps = fps
        self.robot_type = robot_type
        self.motor_names = list(motor_names)
        self.tasks = list(tasks) if tasks else [""]

        task_indices = {frame.task_index for frames in episodes for frame in frames}
        unknown_tasks = sorted(i for i in task_indices if not 0 <= i < len(self.tasks))
        if unknown_tasks:
            raise ValueError(
                f"Frames use task indices {unknown_tasks} that are not in the task table ({len(self.tasks)} task(s))."
            )
        self.video_segments = dict(video_segments or {})
        self.camera_configs = dict(camera_configs or {})
        self.license = license

        containers = {config.container for config in self.camera_configs.values()}
        if len(containers) > 1:
            raise ValueError(f"All cameras must use the same video container (got {sorted(containers)}).")
        self.video_container = containers.pop() if containers else None

        for episode_index, camera in self.video_segments:
            if camera not in self.camera_configs:
                raise ValueError(f"Video segment of episode {episode_index} belongs to unknown camera '{camera}'.")

    def __repr__(self):
        return (
            f"{self.__class__.__name__}({{\n"
            f"    Repository ID: '{self.repo_id}',\n"
            f"    Number of episodes: '{self.num_episodes}',\n"
            f"    Number of frames: '{self.num_frames}',\n"
            f"    Cameras: {list(self.camera_configs)},\n"
            "})"
        )

    @property
    def num_episodes(self) -> int:
        return len(self.episodes)

    @property
    def num_frames(self) -> int:
        return sum(len(frames) for frames in self.episodes)

    @property
    def features(self) -> dict:
        return {
            **get_motor_features(self.motor_names, self.fps),
            **get_camera_features(self.camera_configs),
            **DEFAULT_FEATURES,
        }

    @property
    def video_keys(self) -> list[str]:
        return [get_video_key(name) for name in self.camera_configs]

    def get_episode_data(self, frames: list[IndexedFrame]) -> dict[str, np.ndarray]:
        """Column arrays of one episode. Timestamps restart at 0 and advance by 1/fps."""
        frame_index = np.array([frame.frame_index for frame in frames], dtype=np.int64)
        return {
            ACTION: np.stack([frame.action for frame in frames]).astype(np.float32),
            OBS_ROBOT: np.stack([frame.observation_state for frame in frames]).astype(np.float32),
            "timestamp": (frame_index / self.fps).astype(np.float32),
            "frame_index": frame_index,
            "episode_index": np.array([frame.episode_index for frame in frames], dtype=np.int64),
            "index": np.array([frame.index for frame in frames], dtype=np.int64),
            "task_index": np.array([frame.task_index for frame in frames], dtype=np.int64),
        }

    def export_blobs(self) -> list[DatasetFile]:
        """
        生成所有数据集文件 (Generate Every Dataset File)

        返回值 (Returns):
            list[DatasetFile]: 数据文件、视频、元数据和 README.md,路径相对于数据集根目录
                               data files, videos, metadata and README.md, with paths relative to
                               the dataset root
        """
        features = self.features
        hf_features = get_hf_features_from_features(features)

        data_files = []
        episodes_stats = []
        for frames in self.episodes:
            episode_data = self.get_episode_data(frames)
            episodes_stats.append(compute_episode_stats(episode_data, features))
            hf_dataset = datasets.Dataset.from_dict(
                {key: value.tolist() for key, value in episode_data.items()}, features=hf_features
            )
            data_files.append(DatasetFile(get_data_file_path(_episode_index(frames)), _to_parquet(hf_dataset)))

        video_files = []
        for (episode_index, camera), blob in sorted(self.video_segments.items()):
            path = get_video_file_path(episode_index, get_video_key(camera), self.video_container)
            video_files.append(DatasetFile(path, bytes(blob)))

        info = create_dataset_info(
            CODEBASE_VERSION,
            self.fps,
            self.robot_type,
            features,
            total_episodes=self.num_episodes,
            total_frames=self.num_frames,
            total_tasks=len(self.tasks),
            total_videos=len(video_files),
            video_container=self.video_container,
        )
        info["data_files_size_in_mb"] = _size_in_mb(data_files)
        info["video_files_size_in_mb"] = _size_in_mb(video_files)

        meta_files = [
            DatasetFile(INFO_PATH, dumps_json(info)),
            DatasetFile(STATS_PATH, dumps_json(serialize_dict(aggregate_stats(episodes_stats)))),
            DatasetFile(TASKS_PATH, self._tasks_parquet()),
            DatasetFile(EPISODES_PATH, self._episodes_parquet(episodes_stats)),
        ]
        card = create_lerobot_dataset_card(dataset_info=info, license=self.license)
        readme = DatasetFile("README.md", str(card).encode("utf-8"))

        return data_files + meta_files + video_files + [readme]

    def _tasks_parquet(self) -> bytes:
        return _to_parquet(
            datasets.Dataset.from_dict({"task_index": list(range(len(self.tasks))), "task": self.tasks})
        )

    def _episodes_parquet(self, episodes_stats: list[dict]) -> bytes:
        """One row per episode: tasks, length, data and video locations, and flattened stats."""
        columns: dict[str, list] = {}

        def add(key, value):
            columns.setdefault(key, []).append(value)

        for frames, ep_stats in zip(self.episodes, episodes_stats, strict=True):
            episode_index = _episode_index(frames)
            task_indices = sorted({frame.task_index for frame in frames})
            add("episode_index", episode_index)
            add("tasks", [self.tasks[i] for i in task_indices])
            add("length", len(frames))
            add("data/chunk_index", get_episode_chunk(episode_index))
            add("data/file_index", episode_index)
            add("dataset_from_index", frames[0].index)
            add("dataset_to_index", frames[-1].index + 1)
            for video_key in self.video_keys:
                add(f"videos/{video_key}/chunk_index", get_episode_chunk(episode_index))
                add(f"videos/{video_key}/file_index", episode_index)
                add(f"videos/{video_key}/from_timestamp", 0.0)
                add(f"videos/{video_key}/to_timestamp", len(frames) / self.fps)
            for key, stats in ep_stats.items():
                for stat_name, value in stats.items():
                    add(f"stats/{key}/{stat_name}", value.tolist())

        return _to_parquet(datasets.Dataset.from_dict(columns))

    def to_zip(self) -> bytes:
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            for dataset_file in self.export_blobs():
                archive.writestr(dataset_file.path, dataset_file.content)
        return buffer.getvalue()

    def export_zip(self, fpath: Path | str | None = None) -> Path:
        fpath = Path(fpath) if fpath is not None else Path(f"{self.repo_id.replace('/', '_')}.zip")
        fpath.parent.mkdir(parents=True, exist_ok=True)
        fpath.write_bytes(self.to_zip())
        logging.info(f"Dataset archive written to {fpath}")
        return fpath

    def save_to_disk(self, root: Path | str | None = None) -> Path:
        """
        保存到本地目录 (Save to a Local Directory)

        默认目录为 `HF_LEROBOT_HOME / repo_id`,与 LeRobotDataset 读取的位置一致。
        Defaults to `HF_LEROBOT_HOME / repo_id`, where LeRobotDataset looks for local datasets.
        """
        root = Path(root) if root is not None else HF_LEROBOT_HOME / self.repo_id
        for dataset_file in self.export_blobs():
            fpath = root / dataset_file.path
            fpath.parent.mkdir(parents=True, exist_ok=True)
            fpath.write_bytes(dataset_file.content)
        logging.info(f"Dataset saved to {root}")
        return root

    def push_to_hub(
        self,
        token: str | None = None,
        private: bool = False,
        branch: str | None = None,
        publisher: HubPublisher | None = None,
    ) -> PublishHandle:
        publisher = publisher if publisher is not None else HubPublisher(codebase_version=CODEBASE_VERSION)
        return publisher.publish(self.export_blobs(), token=token, repo_id=self.repo_id, private=private, branch=branch)


def _to_parquet(hf_dataset: datasets.Dataset) -> bytes:
    buffer = io.BytesIO()
    hf_dataset.to_parquet(buffer)
    return buffer.getvalue()


def _size_in_mb(files: list[DatasetFile]) -> float:
    return round(sum(len(dataset_file.content) for dataset_file in files) / (1024 * 1024), 3)


def _episode_index(frames: list[IndexedFrame]) -> int:
    return frames[0].episode_index
