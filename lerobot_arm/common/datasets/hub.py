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
Hugging Face Hub 发布 (Hugging Face Hub Publishing)

功能说明 (Functionality):
    在后台线程中把导出的数据集文件上传到 Hub:创建数据集仓库,按批次提交文件并报告进度,
    最后为代码库版本打标签。

    Uploads exported dataset files to the Hub on a background thread. The dataset repo is
    created first, then files are committed in batches with progress reports, and finally the
    codebase version is tagged.

使用示例 (Usage Example):
    ```python
    publisher = HubPublisher()
    publisher.on_progress(lambda p: print(p.files_done, "/", p.total_files))
    handle = publisher.publish(exporter.export_blobs(), token=token, repo_id="user/so100_cube")
    url = handle.wait()
    ```
"""

import contextlib
import logging
import threading
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Callable

from huggingface_hub import CommitOperationAdd, HfApi
from huggingface_hub.errors import RevisionNotFoundError


@dataclass(frozen=True)
class DatasetFile:
    """One file of an exported dataset, addressed by its path inside the repo."""

    path: str
    content: bytes


@dataclass(frozen=True)
class PublishProgress:
    step: str  # "create_repo" | "upload" | "tag" | "done"
    files_done: int
    total_files: int
    path: str | None = None


class PublishHandle:
    """Handle on a running publication. `wait()` returns the dataset url or re-raises the upload error."""

    def __init__(self, repo_id: str, future: Future):
        self.repo_id = repo_id
        self._future = future

    @property
    def done(self) -> bool:
        return self._future.done()

    @property
    def error(self) -> BaseException | None:
        if not self._future.done():
            return None
        return self._future.exception()

    def wait(self, timeout: float | None = None) -> str:
        return self._future.result(timeout=timeout)


class HubPublisher:
    def __init__(self, api: HfApi | None = None, codebase_version: str = "v2.1", files_per_commit: int = 50):
        if files_per_commit < 1:
            raise ValueError(f"`files_per_commit` must be at least 1, but {files_per_commit} was provided.")
        self.api = api if api is not None else HfApi()
        self.codebase_version = codebase_version
        self.files_per_commit = files_per_commit
        self._progress_listeners: list[Callable[[PublishProgress], None]] = []

    def on_progress(self, callback: Callable[[PublishProgress], None]):
        self._progress_listeners.append(callback)

    def publish(
        self,
        files: list[DatasetFile],
        token: str | None,
        repo_id: str,
        private: bool = False,
        branch: str | None = None,
        tag_version: bool = True,
    ) -> PublishHandle:
        """
        发布数据集 (Publish the Dataset)

        参数说明 (Parameters):
            files (list[DatasetFile]): 要上传的文件 / files to upload
            token (str | None): Hub 访问令牌,None 时使用本地登录信息
                                Hub access token, the local login is used when None
            repo_id (str): 数据集仓库 id,例如 "user/so100_cube" / dataset repo id, e.g. "user/so100_cube"
            private (bool): 是否创建私有仓库 / create a private repo
            branch (str | None): 上传的目标分支 / target branch of the upload
            tag_version (bool): 是否为代码库版本打标签 / tag the codebase version

        返回值 (Returns):
            PublishHandle: 立即返回,上传在后台线程进行 / returns at once, the upload runs on a background thread
        """
        if not files:
            raise ValueError("Nothing to publish: the dataset has no files.")

        future: Future = Future()

        def target():
            try:
                future.set_result(self._publish(files, token, repo_id, private, branch, tag_version))
            except Exception as e:
                logging.error(f"Publishing '{repo_id}' to the hub failed: {e}")
                future.set_exception(e)

        threading.Thread(target=target, name="hub-publisher", daemon=True).start()
        return PublishHandle(repo_id, future)

    def _publish(self, files, token, repo_id, private, branch, tag_version) -> str:
        total = len(files)

        self._emit(PublishProgress("create_repo", 0, total))
        repo_url = self.api.create_repo(
            repo_id=repo_id,
            token=token,
            private=private,
            repo_type="dataset",
            exist_ok=True,
        )
        if branch:
            self.api.create_branch(
                repo_id=repo_id,
                branch=branch,
                token=token,
                repo_type="dataset",
                exist_ok=True,
            )

        # 每个批次一次提交 / One commit per batch of files
        for start in range(0, total, self.files_per_commit):
            batch = files[start : start + self.files_per_commit]
            self._emit(PublishProgress("upload", start, total, batch[0].path))
            self.api.create_commit(
                repo_id=repo_id,
                operations=[
                    CommitOperationAdd(path_in_repo=dataset_file.path, path_or_fileobj=dataset_file.content)
                    for dataset_file in batch
                ],
                commit_message=f"Upload files {start + 1}-{start + len(batch)} of {total}",
                token=token,
                repo_type="dataset",
                revision=branch,
            )
        self._emit(PublishProgress("upload", total, total))

        if tag_version:
            self._emit(PublishProgress("tag", total, total))
            with contextlib.suppress(RevisionNotFoundError):
                self.api.delete_tag(repo_id, tag=self.codebase_version, token=token, repo_type="dataset")
            self.api.create_tag(
                repo_id, tag=self.codebase_version, revision=branch, token=token, repo_type="dataset"
            )

        self._emit(PublishProgress("done", total, total))
        logging.info(f"Published {total} files to {repo_url}")
        return str(repo_url)

    def _emit(self, progress: PublishProgress):
        for callback in self._progress_listeners:
            callback(progress)
