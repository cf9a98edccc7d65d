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

import numpy as np
import pytest

from lerobot_arm.common.datasets.compute_stats import (
    aggregate_feature_stats,
    aggregate_stats,
    compute_episode_stats,
    get_feature_stats,
)

FEATURES = {
    "action": {"dtype": "float32", "shape": (2,), "names": ["a", "b"]},
    "index": {"dtype": "int64", "shape": (1,), "names": None},
    "observation.images.front": {"dtype": "video", "shape": (480, 640, 3), "names": None},
}


def test_get_feature_stats():
    data = np.array([[1.0, 10.0], [3.0, 30.0]])
    stats = get_feature_stats(data, axis=0, keepdims=False)

    np.testing.assert_allclose(stats["min"], [1, 10])
    np.testing.assert_allclose(stats["max"], [3, 30])
    np.testing.assert_allclose(stats["mean"], [2, 20])
    np.testing.assert_allclose(stats["std"], [1, 10])
    np.testing.assert_array_equal(stats["count"], [2])


def test_compute_episode_stats_skips_videos_and_reshapes_scalars():
    episode_data = {
        "action": np.array([[0.0, 1.0], [2.0, 3.0], [4.0, 5.0]]),
        "index": np.array([0, 1, 2]),
        "observation.images.front": np.zeros(3),
    }
    stats = compute_episode_stats(episode_data, FEATURES)

    assert set(stats) == {"action", "index"}
    assert stats["index"]["mean"].shape == (1,)
    np.testing.assert_allclose(stats["index"]["mean"], [1.0])
    np.testing.assert_allclose(stats["action"]["max"], [4.0, 5.0])


def test_aggregate_matches_stats_of_concatenated_data():
    rng = np.random.default_rng(0)
    ep_1 = rng.normal(size=(20, 3))
    ep_2 = rng.normal(loc=2.0, size=(50, 3))

    aggregated = aggregate_feature_stats(
        [get_feature_stats(ep, axis=0, keepdims=False) for ep in [ep_1, ep_2]]
    )
    expected = get_feature_stats(np.concatenate([ep_1, ep_2]), axis=0, keepdims=False)

    for key in ["min", "max", "mean", "std"]:
        np.testing.assert_allclose(aggregated[key], expected[key])
    np.testing.assert_array_equal(aggregated["count"], [70])


def test_aggregate_stats_takes_the_union_of_keys():
    stats_1 = {"a": get_feature_stats(np.ones((2, 1)), axis=0, keepdims=False)}
    stats_2 = {"b": get_feature_stats(np.zeros((3, 1)), axis=0, keepdims=False)}
    assert set(aggregate_stats([stats_1, stats_2])) == {"a", "b"}


def test_aggregate_stats_rejects_non_arrays():
    with pytest.raises(ValueError):
        aggregate_stats([{"a": {"min": 1.0}}])
