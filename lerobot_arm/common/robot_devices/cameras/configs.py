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
相机配置模块 (Camera Configuration Module)

功能说明 (Functionality):
    描述录制器收到的相机视频。相机采集本身不在本库内完成,录制器只接收已经编码完成的视频数据,
    这里的配置写入数据集元数据,并决定视频文件的扩展名。

    Describes the camera videos handed to the recorder. Capturing frames is not done by this
    library: the recorder only accepts finished, encoded video blobs. These configs end up in
    the dataset metadata and decide the extension of the video files.

使用示例 (Usage Example):
    ```python
    from lerobot_arm.common.robot_devices.cameras.configs import OpenCVCameraConfig

    config = OpenCVCameraConfig(fps=30, width=640, height=480, container="webm", video_codec="vp9")
    ```
"""

import abc
from dataclasses import dataclass

import draccus

# 视频帧始终为 3 通道 / Video frames always have 3 channels
VIDEO_CHANNELS = 3


@dataclass
class CameraConfig(draccus.ChoiceRegistry, abc.ABC):
    fps: int = 30
    width: int = 640
    height: int = 480
    container: str = "mp4"

    @property
    def type(self) -> str:
        """返回配置类型名称 / Return configuration type name"""
        return self.get_choice_name(self.__class__)

    @abc.abstractmethod
    def get_video_info(self) -> dict:
        pass


@CameraConfig.register_subclass("opencv")
@dataclass
class OpenCVCameraConfig(CameraConfig):
    """
    OpenCV 相机视频配置 (OpenCV Camera Video Configuration)

    属性说明 (Attributes):
        fps (int): 视频帧率 / Video frame rate
        width (int), height (int): 采集分辨率(像素) / Capture resolution (pixels)
        rotation (int | None):
            采集时的旋转角度,90/-90 会交换宽高 / Rotation applied at capture, 90/-90 swap width and height
        video_codec (str), pix_fmt (str): 编码与像素格式 / Codec and pixel format
        container (str): 视频容器,即文件扩展名 / Video container, i.e. the file extension
    """

    rotation: int | None = None
    video_codec: str = "av1"
    pix_fmt: str = "yuv420p"

    def __post_init__(self):
        if self.fps <= 0:
            raise ValueError(f"`fps` must be strictly positive, but {self.fps} was provided.")
        if self.rotation not in [-90, None, 90, 180]:
            raise ValueError(f"`rotation` must be in [-90, None, 90, 180] (got {self.rotation})")
        if self.container not in ["mp4", "webm", "mkv"]:
            raise ValueError(f"`container` must be in ['mp4', 'webm', 'mkv'] (got {self.container})")

    def get_video_info(self) -> dict:
        """Video description stored under the camera feature in `meta/info.json`."""
        if self.rotation in [-90, 90]:
            height, width = self.width, self.height
        else:
            height, width = self.height, self.width
        return {
            "video.fps": self.fps,
            "video.height": height,
            "video.width": width,
            "video.channels": VIDEO_CHANNELS,
            "video.codec": self.video_codec,
            "video.pix_fmt": self.pix_fmt,
            "video.is_depth_map": False,
            "has_audio": False,
        }
