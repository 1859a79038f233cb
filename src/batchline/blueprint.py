"""Subscriber blueprints and the blueprint builder.

A Blueprint is the immutable, fully-resolved configuration of a subscriber.
BlueprintBuilder turns a subscriber class or raw options into one:

1. A class is asked for its config(); a returned blueprint is stamped with
   the class and re-validated, returned options get the class injected.
2. Options are validated against SUBSCRIBER_SCHEMA.
3. otp_app, when not given, is taken from the source.
4. Environment defaults are resolved from the framework scope and the
   otp_app scope and laid under the explicit options (start_opts merged).
5. The assembled options are validated again and frozen.

Building is all-or-nothing: any failure raises a BlueprintError subclass.
"""

import dataclasses
import inspect
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Generic, Mapping, Optional, TypeVar, Union

from config.environment import get_environment
from config.options import (
    AnyValue,
    Identifier,
    InstanceOf,
    KeywordList,
    OneOf,
    OptionSpec,
    OptionsSchema,
    String,
    SubscriberClass,
)
from config.resolver import merge_options, resolve
from core.errors import NoConfigFunctionError, SubscriberError, UnresolvedDependencyError
from core.logging import get_logger, log_with_context
from core.types import ConfigProvider
from batchline.source import Source, source_config

logger = get_logger(__name__)

T = TypeVar("T")

# Environment scope holding framework-wide defaults
FRAMEWORK_SCOPE = "batchline"
# Key under each scope holding subscriber defaults
CONTRACT_KEY = "subscriber"
# Options merged key by key instead of replaced
MERGE_KEYS = ("start_opts",)

SUBSCRIBER_SCHEMA = OptionsSchema(
    module=OptionSpec(
        SubscriberClass(),
        required=True,
        doc="A class implementing the Subscriber contract.",
    ),
    otp_app=OptionSpec(
        Identifier(),
        doc="Owning application. Defaults to the source's `otp_app`.",
    ),
    id=OptionSpec(
        OneOf([String(), SubscriberClass()]),
        doc="Unique ID for this subscriber, defaults to `module`.",
    ),
    source=OptionSpec(
        OneOf([Identifier(), InstanceOf(Source, "source")]),
        required=True,
        doc="Name of a registered source, or the Source itself.",
    ),
    start_opts=OptionSpec(
        KeywordList(),
        default={},
        doc=(
            "Options consumed by the source's adapter when starting this subscriber. "
            "Refer to the adapter's docs for the supported keys."
        ),
    ),
    subscriber_opts=OptionSpec(
        AnyValue(),
        doc="Passed through untouched. The default `init()` returns it as the context.",
    ),
)


@dataclass(frozen=True)
class Blueprint(Generic[T]):
    """Immutable, fully-resolved subscriber configuration.

    T is the type of subscriber_opts expected by the subscriber class.

    Blueprints compare by value but are unhashable, since start_opts and
    subscriber_opts may hold mutable values.
    """

    module: type
    source: Union[str, Source]
    otp_app: Optional[str] = None
    id: Any = None
    start_opts: Mapping[str, Any] = field(default_factory=dict)
    subscriber_opts: Optional[T] = None

    __hash__ = None  # type: ignore[assignment]

    def __post_init__(self):
        object.__setattr__(self, "start_opts", MappingProxyType(dict(self.start_opts)))

    @property
    def source_name(self) -> str:
        return self.source.name if isinstance(self.source, Source) else self.source

    def replace(self, **changes: Any) -> "Blueprint[T]":
        """Return a new blueprint with fields replaced (not re-validated)."""
        return dataclasses.replace(self, **changes)

    def to_options(self) -> Dict[str, Any]:
        options = {f.name: getattr(self, f.name) for f in dataclasses.fields(self)}
        options["start_opts"] = dict(self.start_opts)
        return options


@dataclass(frozen=True)
class Resolved(Generic[T]):
    """config() result carrying an already-built blueprint."""

    blueprint: Blueprint[T]


@dataclass(frozen=True)
class Raw:
    """config() result carrying raw options still to be resolved."""

    options: Mapping[str, Any]


ConfigResult = Union[Resolved, Raw]


def read_config(module: type) -> ConfigResult:
    """Call a subscriber class's config() and normalize the result.

    Plain blueprints and mappings are accepted and wrapped.

    Raises:
        NoConfigFunctionError: If the class has no callable config
        TypeError: If config() returns something else
    """
    config = getattr(module, "config", None)
    if not callable(config):
        raise NoConfigFunctionError(module)

    result = config()
    if isinstance(result, (Resolved, Raw)):
        return result
    if isinstance(result, Blueprint):
        return Resolved(result)
    if isinstance(result, Mapping):
        return Raw(result)
    raise TypeError(
        f"{module.__qualname__}.config() must return a Blueprint or options mapping, "
        f"got {type(result).__name__}"
    )


class BlueprintBuilder:
    """Builds blueprints against a schema and an environment store.

    Args:
        provider: Environment store; the process-wide one is used when None
        schema: Option schema to validate against
        framework_scope: Scope consulted first for environment defaults
        contract_key: Key looked up under each scope
    """

    def __init__(
        self,
        provider: Optional[ConfigProvider] = None,
        schema: OptionsSchema = SUBSCRIBER_SCHEMA,
        framework_scope: str = FRAMEWORK_SCOPE,
        contract_key: str = CONTRACT_KEY,
    ):
        self._provider = provider
        self.schema = schema
        self.framework_scope = framework_scope
        self.contract_key = contract_key

    @property
    def provider(self) -> ConfigProvider:
        return self._provider if self._provider is not None else get_environment()

    def build(self, module_or_options: Union[type, Mapping[str, Any], Blueprint]) -> Blueprint:
        """Build a blueprint from a subscriber class, raw options, or a blueprint.

        Raises:
            NoConfigFunctionError: A class without config()
            SchemaError: Options failing validation before or after resolution
            UnresolvedDependencyError: otp_app absent and the source has none
            TypeError: An argument of none of the accepted kinds
        """
        if isinstance(module_or_options, Blueprint):
            return self._freeze(module_or_options.to_options())
        if inspect.isclass(module_or_options):
            return self._build_from_module(module_or_options)
        if isinstance(module_or_options, Mapping):
            return self._build_from_options(module_or_options)
        raise TypeError(
            "Expected a subscriber class, an options mapping or a Blueprint, "
            f"got {type(module_or_options).__name__}"
        )

    def _build_from_module(self, module: type) -> Blueprint:
        result = read_config(module)
        if isinstance(result, Resolved):
            return self._freeze(result.blueprint.replace(module=module).to_options())

        options = dict(result.options)
        options["module"] = module
        return self._build_from_options(options)

    def _build_from_options(self, options: Mapping[str, Any]) -> Blueprint:
        provisional = self.schema.validate(options)

        otp_app = provisional.get("otp_app") or self._source_otp_app(provisional["source"])

        resolved = resolve(
            [
                (self.framework_scope, self.contract_key),
                (otp_app, self.contract_key),
            ],
            MERGE_KEYS,
            self.provider,
        )
        # Only options actually given are laid over the environment; schema
        # defaults must not mask resolved values
        explicit = {key: provisional[key] for key in options if key in provisional}
        assembled = merge_options(resolved, explicit, MERGE_KEYS)
        assembled["otp_app"] = otp_app

        blueprint = self._freeze(assembled)

        log_with_context(
            logger,
            logging.DEBUG,
            "Resolved subscriber blueprint",
            subscriber_module=blueprint.module.__qualname__,
            otp_app=otp_app,
            source_name=blueprint.source_name,
            resolved_keys=sorted(resolved),
        )
        return blueprint

    def _freeze(self, options: Mapping[str, Any]) -> Blueprint:
        validated = self.schema.validate(options)
        if validated.get("id") is None:
            validated["id"] = validated["module"]
        return Blueprint(**validated)

    @staticmethod
    def _source_otp_app(source: Union[str, Source]) -> str:
        try:
            otp_app = source_config(source, "otp_app")
        except (SubscriberError, KeyError) as e:
            raise UnresolvedDependencyError("otp_app", e) from e

        if not otp_app:
            raise UnresolvedDependencyError(
                "otp_app", f"source '{source}' does not define an otp_app"
            )
        return otp_app


def build_blueprint(
    module_or_options: Union[type, Mapping[str, Any], Blueprint],
    provider: Optional[ConfigProvider] = None,
) -> Blueprint:
    """Build a blueprint using the process-wide environment (or provider)."""
    return BlueprintBuilder(provider=provider).build(module_or_options)
