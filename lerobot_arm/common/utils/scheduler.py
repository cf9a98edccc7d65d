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
固定频率任务调度器 (Fixed-Rate Task Scheduler)

功能说明 (Functionality):
    在后台守护线程中以固定频率调用回调函数。
    同一时刻最多只有一次回调在执行:如果某次回调耗时超过周期,
    错过的节拍会被直接跳过,而不是排队补执行。

    Calls a callback at a fixed rate on a background daemon thread. At most one callback
    runs at a time: when a callback overruns its period, the missed ticks are skipped
    instead of being queued.

错误处理 (Error Handling):
    回调抛出的异常会终止循环,保存在 `error` 属性中,并传给 `on_error`。
    An exception raised by the callback ends the loop. It is stored in `error` and passed
    to `on_error`.

使用示例 (Usage Example):
    ```python
    task = PeriodicTask(robot_step, frequency_hz=60, name="teleop")
    task.start()
    ...
    task.stop()
    ```
"""

import logging
import threading
import time
from typing import Callable


class PeriodicTask:
    def __init__(
        self,
        callback: Callable[[], None],
        frequency_hz: float,
        name: str = "periodic-task",
        on_error: Callable[[Exception], None] | None = None,
        clock: Callable[[], float] = time.perf_counter,
    ):
        if frequency_hz <= 0:
            raise ValueError(f"`frequency_hz` must be strictly positive, but {frequency_hz} was provided.")

        self.callback = callback
        self.period_s = 1.0 / frequency_hz
        self.name = name
        self.on_error = on_error
        self.clock = clock

        self.tick_count = 0
        self.skipped_ticks = 0
        self.error: Exception | None = None

        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stop_event.is_set()

    def start(self):
        if self.is_running:
            return

        self.error = None
        # 每次启动使用新的事件,旧线程不会被重新唤醒 / A fresh event per run keeps an old thread stopped
        self._stop_event = threading.Event()
        self._thread = threading.Thread(target=self._run, args=(self._stop_event,), name=self.name, daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = None):
        """
        停止循环 (Stop the loop)

        当前正在执行的回调会先完成。从回调内部调用时不会等待线程结束。
        The callback in progress finishes first. When called from inside the callback the
        thread is not joined.
        """
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    def _run(self, stop_event: threading.Event):
        next_tick = self.clock()
        while not stop_event.is_set():
            delay = next_tick - self.clock()
            if delay > 0 and stop_event.wait(delay):
                break

            try:
                self.callback()
            except Exception as e:
                self.error = e
                logging.error(f"Periodic task '{self.name}' stopped after an error: {e!r}")
                stop_event.set()
                if self.on_error is not None:
                    self.on_error(e)
                break

            self.tick_count += 1
            next_tick += self.period_s

            now = self.clock()
            if now > next_tick:
                # 回调超时,跳过错过的节拍 / Callback overran, skip the missed ticks
                missed = int((now - next_tick) // self.period_s) + 1
                self.skipped_ticks += missed
                next_tick += missed * self.period_s
