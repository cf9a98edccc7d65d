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
Episode 与重采样模块 (Episode and Resampling Module)

功能说明 (Functionality):
    遥操作事件到达的时间是不规则的。本模块把一个 Episode 内的不规则帧,
    按固定帧率线性插值成规则间隔的帧,这是 LeRobot 数据集要求的格式。

    Teleoperation events arrive at irregular times. This module resamples the irregular
    frames of one episode into regularly spaced frames at a fixed rate, which is the format
    LeRobot datasets expect.

重采样规则 (Resampling Rules):
    - 帧数 = floor(timespan × fps),第 i 帧时间 t = start_time + i / fps
      frame count = floor(timespan × fps), frame i is at t = start_time + i / fps
    - t 早于第一帧或不早于最后一帧时,取边界帧的值(不外推)
      before the first frame or at/after the last one, the boundary frame is used (no extrapolation)
    - 否则找到 a.t ≤ t < b.t 的相邻帧 (a, b) 并线性插值
      otherwise the bracket a.t ≤ t < b.t is found and values are linearly interpolated
    - episode_index 和 task_index 取自 a / episode_index and task_index come from a

使用示例 (Usage Example):
    ```python
    episode = Episode(episode_index=0)
    episode.append(Frame(0.00, action, state))
    episode.append(Frame(0.25, action2, state2))
    frames = episode.get_interpolated_regular_episode(fps=30, start_index=0)
    ```
"""

import math
from bisect import bisect_right
from dataclasses import dataclass

import numpy as np


class TemporalInvariantViolation(AssertionError):
    """A frame was appended with a timestamp earlier than the previous frame of its episode."""


class RecordingStateError(RuntimeError):
    """The recorder was used in a state that does not allow the operation."""


@dataclass(eq=False)
class Frame:
    timestamp: float
    action: np.ndarray
    observation_state: np.ndarray
    episode_index: int = 0
    task_index: int = 0

    def __post_init__(self):
        self.action = np.asarray(self.action, dtype=np.float64)
        self.observation_state = np.asarray(self.observation_state, dtype=np.float64)


@dataclass(eq=False)
class IndexedFrame(Frame):
    frame_index: int = 0
    index: int = 0


def interpolate_frames(frame_a: Frame, frame_b: Frame, timestamp: float) -> tuple[np.ndarray, np.ndarray]:
    """
    在两帧之间线性插值 (Linear Interpolation Between Two Frames)

    返回值 (Returns):
        tuple[np.ndarray, np.ndarray]: (action, observation_state)

    异常 (Raises):
        ValueError: timestamp 不在 [a.t, b.t] 内,或 b 早于 a
                    timestamp outside [a.t, b.t], or b earlier than a
    """
    if frame_b.timestamp < frame_a.timestamp:
        raise ValueError(f"frame_b ({frame_b.timestamp}) must not be earlier than frame_a ({frame_a.timestamp})")
    if not frame_a.timestamp <= timestamp <= frame_b.timestamp:
        raise ValueError(
            f"Timestamp {timestamp} must be between {frame_a.timestamp} and {frame_b.timestamp}"
        )

    time_range = frame_b.timestamp - frame_a.timestamp
    if time_range == 0:
        return frame_a.action.copy(), frame_a.observation_state.copy()

    ratio = (timestamp - frame_a.timestamp) / time_range
    action = frame_a.action + (frame_b.action - frame_a.action) * ratio
    observation_state = frame_a.observation_state + (frame_b.observation_state - frame_a.observation_state) * ratio
    return action, observation_state


class Episode:
    """
    录制的 Episode (Recorded Episode)

    属性说明 (Attributes):
        episode_index (int): Episode 编号 / Episode number
        frames (list[Frame]): 按时间非递减排列的帧 / Frames in non-decreasing time order
        start_time, end_time (float): 默认取第一帧/最后一帧的时间,可以覆盖
                                      Default to the first/last frame time, can be overridden
    """

    def __init__(
        self,
        episode_index: int,
        frames: list[Frame] | None = None,
        start_time: float | None = None,
        end_time: float | None = None,
    ):
        self.episode_index = episode_index
        self.frames: list[Frame] = []
        self._start_time = start_time
        self._end_time = end_time
        for frame in frames or []:
            self.append(frame)

    def __len__(self) -> int:
        return len(self.frames)

    def __iter__(self):
        return iter(self.frames)

    def __getitem__(self, idx) -> Frame:
        return self.frames[idx]

    def __repr__(self):
        return f"{self.__class__.__name__}(episode_index={self.episode_index}, num_frames={len(self.frames)})"

    def append(self, frame: Frame):
        if self.frames and frame.timestamp < self.frames[-1].timestamp:
            raise TemporalInvariantViolation(
                f"Frame at {frame.timestamp}s is earlier than the previous frame at {self.frames[-1].timestamp}s "
                f"in episode {self.episode_index}."
            )
        self.frames.append(frame)

    @property
    def start_time(self) -> float:
        if self._start_time is not None:
            return self._start_time
        if not self.frames:
            raise RecordingStateError(f"Episode {self.episode_index} has no frames.")
        return self.frames[0].timestamp

    @start_time.setter
    def start_time(self, value: float | None):
        self._start_time = value

    @property
    def end_time(self) -> float:
        if self._end_time is not None:
            return self._end_time
        if not self.frames:
            raise RecordingStateError(f"Episode {self.episode_index} has no frames.")
        return self.frames[-1].timestamp

    @end_time.setter
    def end_time(self, value: float | None):
        self._end_time = value

    @property
    def timespan(self) -> float:
        return self.end_time - self.start_time

    def get_frame_at(self, timestamp: float) -> tuple[Frame, np.ndarray, np.ndarray]:
        """Returns the bracketing frame `a` and the values at `timestamp`, clamped at both ends."""
        if not self.frames:
            raise RecordingStateError(f"Episode {self.episode_index} has no frames.")
        return self._sample([frame.timestamp for frame in self.frames], timestamp)

    def _sample(self, timestamps: list[float], timestamp: float) -> tuple[Frame, np.ndarray, np.ndarray]:
        first, last = self.frames[0], self.frames[-1]
        if timestamp < first.timestamp:
            return first, first.action.copy(), first.observation_state.copy()
        if timestamp >= last.timestamp:
            return last, last.action.copy(), last.observation_state.copy()

        # a.t <= t < b.t
        idx = bisect_right(timestamps, timestamp) - 1
        frame_a, frame_b = self.frames[idx], self.frames[idx + 1]
        action, observation_state = interpolate_frames(frame_a, frame_b, timestamp)
        return frame_a, action, observation_state

    def get_interpolated_regular_episode(self, fps: float, start_index: int = 0) -> list[IndexedFrame]:
        """
        按固定帧率重采样 (Resample at a Fixed Rate)

        参数说明 (Parameters):
            fps (float): 目标帧率 / Target frame rate
            start_index (int): 第一帧的全局 index / Global index of the first frame

        返回值 (Returns):
            list[IndexedFrame]: floor(timespan × fps) 帧 / floor(timespan × fps) frames
        """
        if fps <= 0:
            raise ValueError(f"`fps` must be strictly positive, but {fps} was provided.")
        if not self.frames:
            raise RecordingStateError(f"Episode {self.episode_index} has no frames to resample.")

        start_time = self.start_time
        num_frames = max(0, math.floor(self.timespan * fps))
        timestamps = [frame.timestamp for frame in self.frames]

        resampled = []
        for i in range(num_frames):
            timestamp = start_time + i / fps
            frame_a, action, observation_state = self._sample(timestamps, timestamp)

            resampled.append(
                IndexedFrame(
                    timestamp=timestamp,
                    action=action,
                    observation_state=observation_state,
                    episode_index=frame_a.episode_index,
                    task_index=frame_a.task_index,
                    frame_index=i,
                    index=start_index + i,
                )
            )
        return resampled
