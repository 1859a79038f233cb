"""Tests for blueprint building."""

import logging
from types import MappingProxyType

import pytest

from batchline import BaseSubscriber, Source, register_source
from batchline.blueprint import (
    SUBSCRIBER_SCHEMA,
    Blueprint,
    BlueprintBuilder,
    Raw,
    Resolved,
    build_blueprint,
    read_config,
)
from config.environment import DictEnvironment, set_environment
from core.errors import (
    NoConfigFunctionError,
    SchemaError,
    SourceNotFoundError,
    UnresolvedDependencyError,
)


class OrderSubscriber(BaseSubscriber[dict]):
    options = {"source": "orders", "subscriber_opts": {"table": "orders"}}

    def handle_message(self, topic, data, metadata, context):
        pass


class NoConfig:
    pass


class TestBlueprint:

    def test_start_opts_frozen(self):
        blueprint = Blueprint(module=OrderSubscriber, source="orders", start_opts={"a": 1})

        assert isinstance(blueprint.start_opts, MappingProxyType)
        with pytest.raises(TypeError):
            blueprint.start_opts["a"] = 2

    def test_fields_frozen(self):
        blueprint = Blueprint(module=OrderSubscriber, source="orders")
        with pytest.raises(AttributeError):
            blueprint.otp_app = "other"

    def test_equal_but_unhashable(self):
        first = Blueprint(module=OrderSubscriber, source="orders", start_opts={"topics": ["a"]})
        second = Blueprint(module=OrderSubscriber, source="orders", start_opts={"topics": ["a"]})

        assert first == second
        with pytest.raises(TypeError, match="unhashable"):
            hash(first)

    def test_start_opts_copied(self):
        opts = {"a": 1}
        blueprint = Blueprint(module=OrderSubscriber, source="orders", start_opts=opts)
        opts["a"] = 2

        assert blueprint.start_opts["a"] == 1

    def test_source_name(self, orders_source):
        assert Blueprint(module=OrderSubscriber, source="orders").source_name == "orders"
        assert Blueprint(module=OrderSubscriber, source=orders_source).source_name == "orders"

    def test_to_options_revalidates(self, orders_source):
        blueprint = build_blueprint(OrderSubscriber)
        options = blueprint.to_options()

        assert isinstance(options["start_opts"], dict)
        assert SUBSCRIBER_SCHEMA.validate(options)["module"] is OrderSubscriber
        assert build_blueprint(options) == blueprint


class TestReadConfig:

    def test_raw_options(self):
        result = read_config(OrderSubscriber)
        assert isinstance(result, Raw)
        assert result.options["source"] == "orders"

    def test_wraps_plain_mapping(self):
        class Plain:
            @classmethod
            def config(cls):
                return {"source": "orders"}

        assert read_config(Plain) == Raw({"source": "orders"})

    def test_wraps_plain_blueprint(self):
        blueprint = Blueprint(module=OrderSubscriber, source="orders")

        class Prebuilt:
            @classmethod
            def config(cls):
                return blueprint

        assert read_config(Prebuilt) == Resolved(blueprint)

    def test_missing_config(self):
        with pytest.raises(NoConfigFunctionError) as exc_info:
            read_config(NoConfig)
        assert exc_info.value.module is NoConfig

    def test_rejects_other_results(self):
        class Broken:
            @classmethod
            def config(cls):
                return 42

        with pytest.raises(TypeError, match="Broken.config"):
            read_config(Broken)


class TestBuildFromOptions:

    def test_minimal_options(self, orders_source):
        blueprint = build_blueprint({"module": OrderSubscriber, "source": "orders"})

        assert blueprint.module is OrderSubscriber
        assert blueprint.source == "orders"
        assert blueprint.otp_app == "shop"
        assert blueprint.id is OrderSubscriber
        assert dict(blueprint.start_opts) == {}
        assert blueprint.subscriber_opts is None

    def test_missing_module(self, orders_source):
        with pytest.raises(SchemaError) as exc_info:
            build_blueprint({"source": "orders"})
        assert exc_info.value.key == "module"

    def test_missing_source(self):
        with pytest.raises(SchemaError) as exc_info:
            build_blueprint({"module": OrderSubscriber})
        assert exc_info.value.key == "source"

    def test_unknown_option(self, orders_source):
        with pytest.raises(SchemaError) as exc_info:
            build_blueprint({"module": OrderSubscriber, "source": "orders", "topic": "x"})
        assert exc_info.value.key == "topic"

    def test_explicit_otp_app_skips_source_lookup(self):
        blueprint = build_blueprint({"module": OrderSubscriber, "source": "unregistered", "otp_app": "billing"})
        assert blueprint.otp_app == "billing"

    def test_unregistered_source_without_otp_app(self):
        with pytest.raises(UnresolvedDependencyError) as exc_info:
            build_blueprint({"module": OrderSubscriber, "source": "unregistered"})

        assert exc_info.value.field == "otp_app"
        assert isinstance(exc_info.value.source_reason, SourceNotFoundError)

    def test_source_without_otp_app(self, adapter):
        register_source(Source(name="anonymous", adapter=adapter))

        with pytest.raises(UnresolvedDependencyError) as exc_info:
            build_blueprint({"module": OrderSubscriber, "source": "anonymous"})
        assert exc_info.value.field == "otp_app"

    def test_source_struct_accepted(self, adapter):
        source = Source(name="inline", adapter=adapter, otp_app="shop")
        blueprint = build_blueprint({"module": OrderSubscriber, "source": source})

        assert blueprint.source is source
        assert blueprint.otp_app == "shop"

    def test_string_id(self, orders_source):
        blueprint = build_blueprint({"module": OrderSubscriber, "source": "orders", "id": "orders-1"})
        assert blueprint.id == "orders-1"

    def test_start_opts_pair_list(self, orders_source):
        blueprint = build_blueprint(
            {"module": OrderSubscriber, "source": "orders", "start_opts": [("topics", ["a"])]}
        )
        assert blueprint.start_opts == {"topics": ["a"]}


class TestEnvironmentDefaults:

    def test_start_opts_merged_explicit_wins(self, orders_source):
        set_environment(
            DictEnvironment({"shop": {"subscriber": {"start_opts": {"timeout": 1000, "retries": 3}}}})
        )

        blueprint = build_blueprint(
            {"module": OrderSubscriber, "source": "orders", "start_opts": {"timeout": 5000}}
        )

        assert dict(blueprint.start_opts) == {"timeout": 5000, "retries": 3}

    def test_framework_scope_takes_precedence(self, orders_source):
        set_environment(
            DictEnvironment(
                {
                    "batchline": {"subscriber": {"start_opts": {"timeout": 1000}, "subscriber_opts": "fw"}},
                    "shop": {"subscriber": {"start_opts": {"timeout": 50, "retries": 3}, "subscriber_opts": "app"}},
                }
            )
        )

        blueprint = build_blueprint({"module": OrderSubscriber, "source": "orders"})

        assert dict(blueprint.start_opts) == {"timeout": 1000, "retries": 3}
        assert blueprint.subscriber_opts == "fw"

    def test_explicit_plain_key_overrides_environment(self, orders_source):
        set_environment(DictEnvironment({"shop": {"subscriber": {"id": "from-env"}}}))

        assert build_blueprint({"module": OrderSubscriber, "source": "orders"}).id == "from-env"
        assert build_blueprint({"module": OrderSubscriber, "source": "orders", "id": "mine"}).id == "mine"

    def test_invalid_resolved_value_rejected(self, orders_source):
        set_environment(DictEnvironment({"shop": {"subscriber": {"start_opts": "oops"}}}))

        with pytest.raises(SchemaError) as exc_info:
            build_blueprint({"module": OrderSubscriber, "source": "orders"})
        assert exc_info.value.key == "start_opts"

    def test_invalid_framework_start_opts_rejected_with_explicit_start_opts(self, orders_source):
        set_environment(
            DictEnvironment(
                {
                    "batchline": {"subscriber": {"start_opts": "oops"}},
                    "shop": {"subscriber": {"start_opts": {"retries": 3}}},
                }
            )
        )

        with pytest.raises(SchemaError) as exc_info:
            build_blueprint(
                {"module": OrderSubscriber, "source": "orders", "start_opts": {"timeout": 5000}}
            )
        assert exc_info.value.key == "start_opts"
        assert exc_info.value.received == "oops"

    def test_unknown_resolved_key_rejected(self, orders_source):
        set_environment(DictEnvironment({"shop": {"subscriber": {"colour": "red"}}}))

        with pytest.raises(SchemaError) as exc_info:
            build_blueprint({"module": OrderSubscriber, "source": "orders"})
        assert exc_info.value.key == "colour"

    def test_injected_provider_used(self, orders_source):
        set_environment(DictEnvironment({"shop": {"subscriber": {"id": "global"}}}))
        provider = DictEnvironment({"shop": {"subscriber": {"id": "injected"}}})

        builder = BlueprintBuilder(provider=provider)
        assert builder.build({"module": OrderSubscriber, "source": "orders"}).id == "injected"

    def test_logs_resolution(self, orders_source, caplog):
        with caplog.at_level(logging.DEBUG, logger="batchline.blueprint"):
            build_blueprint({"module": OrderSubscriber, "source": "orders"})

        record = caplog.records[-1]
        assert record.getMessage() == "Resolved subscriber blueprint"
        assert record.otp_app == "shop"


class TestBuildFromModule:

    def test_raw_config_gets_module(self, orders_source):
        blueprint = build_blueprint(OrderSubscriber)

        assert blueprint.module is OrderSubscriber
        assert blueprint.subscriber_opts == {"table": "orders"}
        assert blueprint.otp_app == "shop"

    def test_missing_config(self):
        with pytest.raises(NoConfigFunctionError):
            build_blueprint(NoConfig)

    def test_resolved_config_stamped_with_module(self, orders_source):
        prebuilt = Blueprint(module=OrderSubscriber, source="orders", otp_app="shop", id="fixed")

        class Prebuilt(OrderSubscriber):
            @classmethod
            def config(cls):
                return Resolved(prebuilt)

        blueprint = build_blueprint(Prebuilt)
        assert blueprint.module is Prebuilt
        assert blueprint.id == "fixed"

    def test_resolved_config_still_validated(self):
        broken = Blueprint(module=OrderSubscriber, source="")

        class Broken(OrderSubscriber):
            @classmethod
            def config(cls):
                return Resolved(broken)

        with pytest.raises(SchemaError) as exc_info:
            build_blueprint(Broken)
        assert exc_info.value.key == "source"

    def test_deterministic(self, orders_source):
        set_environment(DictEnvironment({"shop": {"subscriber": {"start_opts": {"retries": 3}}}}))

        assert build_blueprint(OrderSubscriber) == build_blueprint(OrderSubscriber)

    def test_rejects_other_inputs(self):
        with pytest.raises(TypeError):
            build_blueprint(42)

    def test_blueprint_input_revalidated(self, orders_source):
        blueprint = build_blueprint(OrderSubscriber)
        assert build_blueprint(blueprint) == blueprint

    def test_subscriber_blueprint_classmethod(self, orders_source):
        provider = DictEnvironment({"shop": {"subscriber": {"id": "via-provider"}}})
        assert OrderSubscriber.blueprint(provider).id == "via-provider"
