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

from unittest.mock import MagicMock

import pytest
from huggingface_hub.errors import RevisionNotFoundError

from lerobot_arm.common.datasets.hub import DatasetFile, HubPublisher

FILES = [DatasetFile("meta/info.json", b"{}"), DatasetFile("README.md", b"# card")]


@pytest.fixture
def api():
    api = MagicMock()
    api.create_repo.return_value = "https://huggingface.co/datasets/user/so100_test"
    return api


def committed_paths(api) -> list[list[str]]:
    return [[op.path_in_repo for op in call.kwargs["operations"]] for call in api.create_commit.call_args_list]


def test_publish_commits_every_file_and_tags(api):
    publisher = HubPublisher(api=api, files_per_commit=1)
    progress = []
    publisher.on_progress(progress.append)

    handle = publisher.publish(FILES, token="hf_token", repo_id="user/so100_test", private=True)
    assert handle.wait(timeout=5) == "https://huggingface.co/datasets/user/so100_test"
    assert handle.done
    assert handle.error is None

    api.create_repo.assert_called_once_with(
        repo_id="user/so100_test", token="hf_token", private=True, repo_type="dataset", exist_ok=True
    )
    assert committed_paths(api) == [["meta/info.json"], ["README.md"]]
    assert api.create_commit.call_args_list[1].kwargs["operations"][0].path_or_fileobj == b"# card"
    assert api.create_commit.call_args.kwargs["repo_type"] == "dataset"
    api.upload_file.assert_not_called()
    api.create_tag.assert_called_once()
    assert api.create_tag.call_args.kwargs["tag"] == "v2.1"

    assert [p.step for p in progress] == ["create_repo", "upload", "upload", "upload", "tag", "done"]
    assert progress[-1].files_done == progress[-1].total_files == 2


def test_files_are_batched_into_few_commits(api):
    files = [DatasetFile(f"data/chunk-000/episode_{i:06d}.parquet", b"x") for i in range(5)]
    publisher = HubPublisher(api=api, files_per_commit=2)
    progress = []
    publisher.on_progress(progress.append)

    publisher.publish(files, token=None, repo_id="user/so100_test", branch="main").wait(timeout=5)

    assert [len(paths) for paths in committed_paths(api)] == [2, 2, 1]
    assert sum(committed_paths(api), []) == [f.path for f in files]
    assert api.create_commit.call_args.kwargs["commit_message"] == "Upload files 5-5 of 5"
    assert api.create_commit.call_args.kwargs["revision"] == "main"
    uploads = [(p.files_done, p.path) for p in progress if p.step == "upload"]
    assert uploads == [(0, files[0].path), (2, files[2].path), (4, files[4].path), (5, None)]


def test_default_publication_is_a_single_commit(api):
    HubPublisher(api=api).publish(FILES, token=None, repo_id="user/so100_test").wait(timeout=5)
    assert committed_paths(api) == [["meta/info.json", "README.md"]]


def test_files_per_commit_must_be_positive(api):
    with pytest.raises(ValueError):
        HubPublisher(api=api, files_per_commit=0)


def test_missing_tag_is_not_an_error(api):
    api.delete_tag.side_effect = RevisionNotFoundError("no tag", response=MagicMock())
    handle = HubPublisher(api=api).publish(FILES, token=None, repo_id="user/so100_test")
    handle.wait(timeout=5)
    api.create_tag.assert_called_once()


def test_upload_error_is_raised_by_wait(api):
    api.create_commit.side_effect = OSError("network down")
    handle = HubPublisher(api=api).publish(FILES, token=None, repo_id="user/so100_test")

    with pytest.raises(OSError, match="network down"):
        handle.wait(timeout=5)
    assert isinstance(handle.error, OSError)


def test_nothing_to_publish(api):
    with pytest.raises(ValueError):
        HubPublisher(api=api).publish([], token=None, repo_id="user/so100_test")


def test_exporter_push_to_hub_uses_publisher(api):
    from lerobot_arm.common.datasets.lerobot_dataset import LeRobotDatasetExporter
    from tests.datasets.test_lerobot_dataset import MOTOR_NAMES, TASKS, make_episodes

    exporter = LeRobotDatasetExporter(
        "user/so100_test", make_episodes(), fps=10, robot_type=None, motor_names=MOTOR_NAMES, tasks=TASKS
    )
    handle = exporter.push_to_hub(publisher=HubPublisher(api=api))
    handle.wait(timeout=5)

    uploaded = set(sum(committed_paths(api), []))
    assert "meta/info.json" in uploaded
    assert "data/chunk-000/episode_000000.parquet" in uploaded
