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
LeRobot 数据集格式工具 (LeRobot Dataset Format Utilities)

功能说明 (Functionality):
    定义 v2.1 数据集的文件布局、特征描述和元数据文件(info.json、stats.json、README.md)的生成方法。

    Defines the file layout of a v2.1 dataset, its feature description, and how the metadata
    files (info.json, stats.json, README.md) are generated.

文件布局 (Layout):
    data/chunk-000/episode_000000.parquet
    meta/info.json
    meta/stats.json
    meta/tasks.parquet
    meta/episodes/chunk-000/file-000.parquet
    videos/chunk-000/observation.images.{camera}/episode_000000.mp4
    README.md
"""

import json

import datasets
import numpy as np
from huggingface_hub import DatasetCard, DatasetCardData

from lerobot_arm.common.constants import ACTION, OBS_IMAGES, OBS_ROBOT

DEFAULT_CHUNK_SIZE = 1000  # Max number of episodes per chunk

INFO_PATH = "meta/info.json"
STATS_PATH = "meta/stats.json"
TASKS_PATH = "meta/tasks.parquet"
EPISODES_PATH = "meta/episodes/chunk-000/file-000.parquet"

DEFAULT_PARQUET_PATH = "data/chunk-{episode_chunk:03d}/episode_{episode_index:06d}.parquet"
DEFAULT_VIDEO_PATH = "videos/chunk-{episode_chunk:03d}/{video_key}/episode_{episode_index:06d}.{container}"

DEFAULT_FEATURES = {
    "timestamp": {"dtype": "float32", "shape": (1,), "names": None},
    "frame_index": {"dtype": "int64", "shape": (1,), "names": None},
    "episode_index": {"dtype": "int64", "shape": (1,), "names": None},
    "index": {"dtype": "int64", "shape": (1,), "names": None},
    "task_index": {"dtype": "int64", "shape": (1,), "names": None},
}


def get_video_key(camera: str) -> str:
    return f"{OBS_IMAGES}.{camera}"


def get_episode_chunk(episode_index: int, chunks_size: int = DEFAULT_CHUNK_SIZE) -> int:
    return episode_index // chunks_size


def get_data_file_path(episode_index: int, chunks_size: int = DEFAULT_CHUNK_SIZE) -> str:
    episode_chunk = get_episode_chunk(episode_index, chunks_size)
    return DEFAULT_PARQUET_PATH.format(episode_chunk=episode_chunk, episode_index=episode_index)


def get_video_file_path(
    episode_index: int, video_key: str, container: str = "mp4", chunks_size: int = DEFAULT_CHUNK_SIZE
) -> str:
    episode_chunk = get_episode_chunk(episode_index, chunks_size)
    return DEFAULT_VIDEO_PATH.format(
        episode_chunk=episode_chunk, video_key=video_key, episode_index=episode_index, container=container
    )


def get_motor_features(motor_names: list[str], fps: int) -> dict:
    """
    关节向量特征 (Joint Vector Features)

    action 与 observation.state 都是长度等于关节数的 float32 向量。
    Both action and observation.state are float32 vectors with one entry per joint.
    """
    return {
        key: {"dtype": "float32", "shape": (len(motor_names),), "names": list(motor_names), "fps": fps}
        for key in [ACTION, OBS_ROBOT]
    }


def get_camera_features(camera_configs: dict) -> dict:
    features = {}
    for name, config in camera_configs.items():
        video_info = config.get_video_info()
        features[get_video_key(name)] = {
            "dtype": "video",
            "shape": (video_info["video.height"], video_info["video.width"], video_info["video.channels"]),
            "names": ["height", "width", "channels"],
            "info": video_info,
        }
    return features


def get_hf_features_from_features(features: dict) -> datasets.Features:
    """
    转换为 datasets.Features (Convert to datasets.Features)

    只转换写入 parquet 的列,视频特征被跳过。
    Only the columns stored in parquet are converted, video features are skipped.
    """
    hf_features = {}
    for key, ft in features.items():
        if ft["dtype"] in ["video", "image"]:
            continue
        elif ft["shape"] == (1,):
            hf_features[key] = datasets.Value(dtype=ft["dtype"])
        elif len(ft["shape"]) == 1:
            hf_features[key] = datasets.Sequence(
                length=ft["shape"][0], feature=datasets.Value(dtype=ft["dtype"])
            )
        else:
            raise ValueError(f"Corresponding feature is not valid: {ft}")

    return datasets.Features(hf_features)


def create_dataset_info(
    codebase_version: str,
    fps: int,
    robot_type: str | None,
    features: dict,
    total_episodes: int,
    total_frames: int,
    total_tasks: int,
    total_videos: int,
    video_container: str | None = None,
) -> dict:
    """
    生成 meta/info.json 的内容 (Build the Content of meta/info.json)

    文件大小字段(data_files_size_in_mb / video_files_size_in_mb)由导出器在所有文件生成后填写。
    The file size fields (data_files_size_in_mb / video_files_size_in_mb) are filled in by the
    exporter once every file has been generated.
    """
    video_path = None
    if total_videos > 0:
        video_path = DEFAULT_VIDEO_PATH.replace("{container}", video_container or "mp4")

    return {
        "codebase_version": codebase_version,
        "robot_type": robot_type,
        "total_episodes": total_episodes,
        "total_frames": total_frames,
        "total_tasks": total_tasks,
        "total_videos": total_videos,
        "total_chunks": get_episode_chunk(max(total_episodes - 1, 0)) + 1,
        "chunks_size": DEFAULT_CHUNK_SIZE,
        "fps": fps,
        "splits": {"train": f"0:{total_episodes}"},
        "data_path": DEFAULT_PARQUET_PATH,
        "video_path": video_path,
        "features": features,
    }


def serialize_dict(stats: dict[str, np.ndarray | dict]) -> dict:
    serialized = {}
    for key, value in stats.items():
        if isinstance(value, dict):
            serialized[key] = serialize_dict(value)
        elif isinstance(value, np.ndarray):
            serialized[key] = value.tolist()
        elif isinstance(value, np.generic):
            serialized[key] = value.item()
        elif isinstance(value, (int, float)):
            serialized[key] = value
        else:
            raise NotImplementedError(f"The value '{value}' of type '{type(value)}' is not supported.")
    return serialized


def dumps_json(data: dict) -> bytes:
    return json.dumps(data, indent=4, ensure_ascii=False).encode("utf-8")


def create_lerobot_dataset_card(
    tags: list | None = None,
    dataset_info: dict | None = None,
    **kwargs,
) -> DatasetCard:
    """
    生成数据集卡片 README.md (Build the README.md Dataset Card)

    Note: If specified, license must be one of https://huggingface.co/docs/hub/repositories-licenses.
    """
    card_tags = ["LeRobot"]
    if tags:
        card_tags += tags

    card_data = DatasetCardData(
        license=kwargs.get("license"),
        tags=card_tags,
        task_categories=["robotics"],
        configs=[
            {
                "config_name": "default",
                "data_files": "data/*/*.parquet",
            }
        ],
    )

    body = "This dataset was created using [LeRobot](https://github.com/huggingface/lerobot).\n\n"
    body += "## Dataset Description\n\n"
    body += kwargs.get("dataset_description") or "Teleoperation episodes recorded with lerobot-arm."
    body += f"\n\n- **License:** {kwargs.get('license')}\n\n"
    body += "## Dataset Structure\n\n"
    if dataset_info:
        body += "[meta/info.json](meta/info.json):\n"
        body += f"```json\n{json.dumps(dataset_info, indent=4)}\n```\n"

    return DatasetCard(f"---\n{card_data.to_yaml()}\n---\n\n{body}")
