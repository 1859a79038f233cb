"""Tests for precedence-ordered environment resolution."""

from config.environment import DictEnvironment, set_environment
from config.resolver import merge_options, resolve

CANDIDATES = [("batchline", "subscriber"), ("shop", "subscriber")]


class TestResolve:

    def test_nothing_configured(self):
        assert resolve(CANDIDATES, ["start_opts"], DictEnvironment()) == {}

    def test_plain_keys_first_candidate_wins(self):
        env = DictEnvironment(
            {
                "batchline": {"subscriber": {"subscriber_opts": "framework"}},
                "shop": {"subscriber": {"subscriber_opts": "app", "id": "orders"}},
            }
        )

        assert resolve(CANDIDATES, ["start_opts"], env) == {
            "subscriber_opts": "framework",
            "id": "orders",
        }

    def test_merge_keys_combined_earlier_wins(self):
        env = DictEnvironment(
            {
                "batchline": {"subscriber": {"start_opts": {"timeout": 1000}}},
                "shop": {"subscriber": {"start_opts": {"timeout": 50, "retries": 3}}},
            }
        )

        assert resolve(CANDIDATES, ["start_opts"], env) == {
            "start_opts": {"timeout": 1000, "retries": 3}
        }

    def test_merge_key_accepts_pair_lists(self):
        env = DictEnvironment(
            {"shop": {"subscriber": {"start_opts": [["retries", 3]]}}}
        )

        assert resolve(CANDIDATES, ["start_opts"], env) == {"start_opts": {"retries": 3}}

    def test_unmergeable_merge_key_kept(self):
        env = DictEnvironment({"shop": {"subscriber": {"start_opts": "oops"}}})

        assert resolve(CANDIDATES, ["start_opts"], env) == {"start_opts": "oops"}

    def test_unmergeable_merge_key_blocks_lower_candidates(self):
        env = DictEnvironment(
            {
                "batchline": {"subscriber": {"start_opts": "oops"}},
                "shop": {"subscriber": {"start_opts": {"retries": 3}}},
            }
        )

        assert resolve(CANDIDATES, ["start_opts"], env) == {"start_opts": "oops"}

    def test_unmergeable_lower_candidate_replaces_merged_value(self):
        env = DictEnvironment(
            {
                "batchline": {"subscriber": {"start_opts": {"timeout": 1000}}},
                "shop": {"subscriber": {"start_opts": 42}},
            }
        )

        assert resolve(CANDIDATES, ["start_opts"], env) == {"start_opts": 42}

    def test_none_merge_key_value_ignored(self):
        env = DictEnvironment(
            {
                "batchline": {"subscriber": {"start_opts": None}},
                "shop": {"subscriber": {"start_opts": {"retries": 3}}},
            }
        )

        assert resolve(CANDIDATES, ["start_opts"], env) == {"start_opts": {"retries": 3}}

    def test_without_merge_keys_first_wins(self):
        env = DictEnvironment(
            {
                "batchline": {"subscriber": {"start_opts": {"timeout": 1000}}},
                "shop": {"subscriber": {"start_opts": {"retries": 3}}},
            }
        )

        assert resolve(CANDIDATES, (), env) == {"start_opts": {"timeout": 1000}}

    def test_none_scope_skipped(self):
        env = DictEnvironment({"shop": {"subscriber": {"id": "x"}}})

        assert resolve([(None, "subscriber"), ("shop", "subscriber")], (), env) == {"id": "x"}

    def test_defaults_to_process_environment(self):
        set_environment(DictEnvironment({"shop": {"subscriber": {"id": "x"}}}))

        assert resolve(CANDIDATES) == {"id": "x"}

    def test_does_not_mutate_environment(self):
        env = DictEnvironment(
            {
                "batchline": {"subscriber": {"start_opts": {"timeout": 1000}}},
                "shop": {"subscriber": {"start_opts": {"retries": 3}}},
            }
        )
        resolve(CANDIDATES, ["start_opts"], env)["start_opts"]["extra"] = True

        assert env.lookup("batchline", "subscriber") == {"start_opts": {"timeout": 1000}}
        assert env.lookup("shop", "subscriber") == {"start_opts": {"retries": 3}}


class TestMergeOptions:

    def test_overlay_wins_for_plain_keys(self):
        assert merge_options({"id": "a", "otp_app": "x"}, {"id": "b"}) == {"id": "b", "otp_app": "x"}

    def test_merge_keys_combined_overlay_wins(self):
        base = {"start_opts": {"timeout": 1000, "retries": 3}}
        overlay = {"start_opts": {"timeout": 5000}}

        assert merge_options(base, overlay, ["start_opts"]) == {
            "start_opts": {"timeout": 5000, "retries": 3}
        }

    def test_unmergeable_base_kept_for_merge_keys(self):
        assert merge_options({"start_opts": "x"}, {"start_opts": {"a": 1}}, ["start_opts"]) == {
            "start_opts": "x"
        }

    def test_overlay_mapping_replaces_plain_key(self):
        assert merge_options({"subscriber_opts": "x"}, {"subscriber_opts": {"a": 1}}, ["start_opts"]) == {
            "subscriber_opts": {"a": 1}
        }

    def test_overlay_fills_missing_merge_key(self):
        assert merge_options({}, {"start_opts": {"a": 1}}, ["start_opts"]) == {"start_opts": {"a": 1}}

    def test_inputs_untouched(self):
        base = {"start_opts": {"a": 1}}
        merge_options(base, {"start_opts": {"b": 2}}, ["start_opts"])

        assert base == {"start_opts": {"a": 1}}
