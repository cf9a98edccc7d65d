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
LeRobot 数据集录制器 (LeRobot Dataset Recorder)

功能说明 (Functionality):
    订阅遥操作器的位置变化事件,把每个事件记录为一帧:
    - action: 写入前的归一化关节向量 / normalized joint vector before the write
    - observation.state: 写入后的归一化关节向量 / normalized joint vector after the write
    - timestamp: 命令发送时间,相对于当前 Episode 的开始 / command sent time, relative to the episode start

    录制分为多个 Episode。每个相机的视频在开始录制时打上当前 Episode 编号的水印,
    停止时(切换 Episode 或结束录制)生成一个视频片段。

    Subscribes to the teleoperators' position change events and records each event as one
    frame. Recording is split into episodes. Each camera capture is watermarked with the
    episode that was active when it started, and stopping it (on episode change or at the end
    of the recording) finalizes one video segment.

状态 (States):
    空闲 → start() → 录制中 → next_episode()* → stop() → 只读,直到 clear()
    idle → start() → recording → next_episode()* → stop() → read-only until clear()

使用示例 (Usage Example):
    ```python
    recorder = LeRobotDatasetRecorder([teleop], fps=30, task="Pick up the cube")
    recorder.start()
    ...                       # 遥操作 / teleoperate
    recorder.next_episode()
    ...
    recorder.stop()
    exporter = recorder.export(repo_id="user/so100_cube")
    exporter.save_to_disk()
    ```
"""

import logging
import math
import threading
import time
from dataclasses import dataclass, replace
from functools import partial
from typing import Callable, Protocol

from lerobot_arm.common.datasets.episodes import (
    Episode,
    Frame,
    IndexedFrame,
    RecordingStateError,
)
from lerobot_arm.common.datasets.lerobot_dataset import LeRobotDatasetExporter
from lerobot_arm.common.robot_devices.cameras.configs import CameraConfig, OpenCVCameraConfig
from lerobot_arm.common.teleoperators.teleoperator import (
    MotorPositionChangedEvent,
    Teleoperator,
    normalize_position,
)


class VideoCapture(Protocol):
    """A camera recording that produces one encoded video blob per start/stop cycle."""

    def start(self) -> None: ...

    def stop(self) -> bytes: ...


@dataclass(frozen=True)
class VideoSegment:
    camera: str
    episode_index: int
    blob: bytes
    duration_s: float | None = None


@dataclass
class RecordingState:
    is_recording: bool
    frame_count: int
    episode_count: int
    duration_s: float


class LeRobotDatasetRecorder:
    def __init__(
        self,
        teleoperators: list[Teleoperator],
        fps: int = 30,
        robot_type: str = "so100_follower",
        task: str = "",
        cameras: dict[str, tuple[VideoCapture, CameraConfig]] | None = None,
        clock: Callable[[], float] = time.perf_counter,
    ):
        if fps <= 0:
            raise ValueError(f"`fps` must be strictly positive, but {fps} was provided.")
        if not teleoperators:
            raise ValueError("At least one teleoperator is required to record.")

        self.teleoperators = list(teleoperators)
        self.fps = fps
        self.robot_type = robot_type
        self.clock = clock

        self.episodes: list[Episode] = []
        self.video_segments: dict[tuple[int, str], VideoSegment] = {}
        self.tasks: list[str] = [task]
        self.task_index = 0

        self.cameras: dict[str, VideoCapture] = {}
        self.camera_configs: dict[str, CameraConfig] = {}
        for name, (capture, config) in (cameras or {}).items():
            self.add_camera(name, capture, config)

        self._is_recording = False
        self._is_finalized = False
        self._episode_origin = 0.0
        self._recording_started = 0.0
        self._recording_stopped = 0.0
        # 摄像头名称 -> (Episode 编号, 开始时间) / camera name -> (episode index, start time)
        self._capture_watermarks: dict[str, tuple[int, float]] = {}
        self._lock = threading.RLock()

        for teleoperator in self.teleoperators:
            teleoperator.on_change(partial(self._on_motor_position_changed, teleoperator))

    @property
    def is_recording(self) -> bool:
        return self._is_recording

    @property
    def motor_names(self) -> list[str]:
        return self.teleoperators[0].motor_names

    @property
    def current_episode(self) -> Episode | None:
        return self.episodes[-1] if self.episodes else None

    def add_camera(self, name: str, capture: VideoCapture, config: CameraConfig | None = None):
        if self._is_recording:
            raise RecordingStateError("Cameras cannot be added while recording.")
        self.cameras[name] = capture
        self.camera_configs[name] = config if config is not None else OpenCVCameraConfig()

    def remove_camera(self, name: str):
        if self._is_recording:
            raise RecordingStateError("Cameras cannot be removed while recording.")
        self.cameras.pop(name)
        self.camera_configs.pop(name)

    def set_task(self, task: str) -> int:
        """Selects the task of the frames recorded from now on, adding it to the task table if new."""
        with self._lock:
            if task not in self.tasks:
                self.tasks.append(task)
            self.task_index = self.tasks.index(task)
            return self.task_index

    def start(self):
        with self._lock:
            if self._is_recording:
                logging.warning("Recording already in progress.")
                return
            if self._is_finalized:
                raise RecordingStateError("The dataset is finalized. Call `clear()` before recording again.")

            self._is_recording = True
            self._recording_started = self.clock()
            self._open_episode()
            logging.info(f"Recording started (episode {self.current_episode.episode_index}).")

    def next_episode(self) -> int:
        with self._lock:
            if not self._is_recording:
                raise RecordingStateError("`next_episode()` can only be called while recording.")

            self._stop_captures()
            self._open_episode()
            logging.info(f"Recording episode {self.current_episode.episode_index}.")
            return self.current_episode.episode_index

    def stop(self):
        with self._lock:
            if not self._is_recording:
                logging.warning("No recording in progress.")
                return

            self._stop_captures()
            self._is_recording = False
            self._is_finalized = True
            self._recording_stopped = self.clock()
            logging.info(
                f"Recording stopped: {len(self.episodes)} episode(s), "
                f"{sum(len(episode) for episode in self.episodes)} frame(s)."
            )

    def clear(self):
        with self._lock:
            if self._is_recording:
                raise RecordingStateError("Stop the recording before clearing it.")
            self.episodes = []
            self.video_segments = {}
            self.tasks = self.tasks[:1]
            self.task_index = 0
            self._capture_watermarks = {}
            self._is_finalized = False

    def add_video_segment(self, camera: str, episode_index: int, blob: bytes, duration_s: float | None = None):
        """Stores a finished video blob captured outside of the recorder."""
        with self._lock:
            if camera not in self.camera_configs:
                self.camera_configs[camera] = OpenCVCameraConfig()
            self.video_segments[(episode_index, camera)] = VideoSegment(camera, episode_index, bytes(blob), duration_s)

    def get_state(self) -> RecordingState:
        with self._lock:
            if self._is_recording:
                duration = self.clock() - self._recording_started
            elif self._is_finalized:
                duration = self._recording_stopped - self._recording_started
            else:
                duration = 0.0
            return RecordingState(
                is_recording=self._is_recording,
                frame_count=sum(len(episode) for episode in self.episodes),
                episode_count=len(self.episodes),
                duration_s=duration,
            )

    def get_interpolated_episodes(self, fps: int | None = None) -> list[list[IndexedFrame]]:
        """
        重采样所有 Episode (Resample Every Episode)

        每个 Episode 独立重采样,全局 index 在 Episode 之间连续。
        Each episode is resampled on its own. The global index carries across episodes.

        异常 (Raises):
            RecordingStateError: 仍在录制,或存在空 Episode / still recording, or an episode is empty
        """
        with self._lock:
            if self._is_recording:
                raise RecordingStateError("Episodes can only be resampled after the recording has stopped.")

            fps = self.fps if fps is None else fps
            resampled = []
            start_index = 0
            for episode in self.episodes:
                if len(episode) == 0:
                    raise RecordingStateError(f"Episode {episode.episode_index} is empty.")
                frames = episode.get_interpolated_regular_episode(fps, start_index)
                resampled.append(frames)
                start_index += len(frames)
            return resampled

    def drop_short_episodes(self, fps: int | None = None) -> list[int]:
        """
        删除无法导出的 Episode (Drop Episodes That Cannot Be Exported)

        功能说明 (Functionality):
            重采样后少于一帧的 Episode(没有帧、只有一帧、或所有帧时间相同)被删除,
            其视频片段一并删除。剩余的 Episode 重新编号为 0..n-1。

            Episodes that resample to no frame at all (no frames, a single frame, or frames that
            share one timestamp) are removed together with their video segments. The remaining
            episodes are renumbered 0..n-1.

        返回值 (Returns):
            list[int]: 被删除的 Episode 原编号 / original indices of the dropped episodes
        """
        with self._lock:
            if self._is_recording:
                raise RecordingStateError("Episodes can only be dropped after the recording has stopped.")

            fps = self.fps if fps is None else fps
            kept, dropped = [], []
            for episode in self.episodes:
                if len(episode) < 2 or math.floor(episode.timespan * fps) < 1:
                    dropped.append(episode.episode_index)
                else:
                    kept.append(episode)

            video_segments = {}
            for new_index, episode in enumerate(kept):
                old_index = episode.episode_index
                for (segment_episode, camera), segment in self.video_segments.items():
                    if segment_episode == old_index:
                        video_segments[(new_index, camera)] = replace(segment, episode_index=new_index)
                episode.episode_index = new_index
                for frame in episode.frames:
                    frame.episode_index = new_index

            self.episodes = kept
            self.video_segments = video_segments
            return dropped

    def export(self, repo_id: str = "lerobot_arm/recording", license: str | None = "apache-2.0") -> LeRobotDatasetExporter:
        episodes = self.get_interpolated_episodes()
        return LeRobotDatasetExporter(
            repo_id=repo_id,
            episodes=episodes,
            fps=self.fps,
            robot_type=self.robot_type,
            motor_names=self.motor_names,
            tasks=list(self.tasks),
            video_segments={key: segment.blob for key, segment in self.video_segments.items()},
            camera_configs=dict(self.camera_configs),
            license=license,
        )

    def _open_episode(self):
        self.episodes.append(Episode(episode_index=len(self.episodes)))
        self._episode_origin = self.clock()
        self._start_captures()

    def _start_captures(self):
        episode_index = self.current_episode.episode_index
        for name, capture in self.cameras.items():
            capture.start()
            self._capture_watermarks[name] = (episode_index, self.clock())

    def _stop_captures(self):
        for name, capture in self.cameras.items():
            if name not in self._capture_watermarks:
                continue
            episode_index, started = self._capture_watermarks.pop(name)
            blob = capture.stop()
            self.video_segments[(episode_index, name)] = VideoSegment(
                camera=name,
                episode_index=episode_index,
                blob=bytes(blob),
                duration_s=self.clock() - started,
            )

    def _on_motor_position_changed(self, teleoperator: Teleoperator, event: MotorPositionChangedEvent):
        with self._lock:
            if not self._is_recording:
                return

            observation_state = []
            action = []
            for motor in teleoperator.motor_configs:
                if motor.name == event.motor_name:
                    observation_state.append(normalize_position(event.motor_config, event.new_position))
                    action.append(normalize_position(event.motor_config, event.previous_position))
                else:
                    position = normalize_position(motor)
                    observation_state.append(position)
                    action.append(position)

            episode = self.current_episode
            episode.append(
                Frame(
                    timestamp=event.command_sent_timestamp - self._episode_origin,
                    action=action,
                    observation_state=observation_state,
                    episode_index=episode.episode_index,
                    task_index=self.task_index,
                )
            )
