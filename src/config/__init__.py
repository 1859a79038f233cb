"""Configuration for batchline subscribers.

Configuration Structure
-----------------------

options.py       # Option schemas: declared keys, type constraints, defaults
environment.py   # Environment store (YAML file or dict) with scope/key lookups
resolver.py      # Precedence-ordered resolution of environment defaults

Main Functions
--------------

Schema validation:
    - OptionsSchema.validate(): Validate and normalize raw options
    - OptionsSchema.docs(): Render an option table

Environment store:
    - load_environment(): Load from a YAML file or $BATCHLINE_CONFIG
    - get_environment(): Get or load singleton environment
    - set_environment() / reset_environment(): Swap or reset the singleton

Resolution:
    - resolve(): Collect option defaults from ordered (scope, key) candidates
    - merge_options(): Lay explicit options over resolved ones

Usage Examples
--------------

    >>> from config import DictEnvironment, resolve
    >>> env = DictEnvironment({"orders": {"subscriber": {"start_opts": {"retries": 3}}}})
    >>> resolve([("batchline", "subscriber"), ("orders", "subscriber")], ["start_opts"], env)
    {'start_opts': {'retries': 3}}

Configuration Priority
---------------------

Settings are merged in the following priority (highest to lowest):

1. Options given explicitly (hand-written or declared by the subscriber class)
2. Framework-wide environment scope (batchline.subscriber)
3. Application environment scope (<otp_app>.subscriber)
"""

from config.environment import (
    CONFIG_PATH_ENV_VAR,
    DictEnvironment,
    EnvironmentFile,
    YamlEnvironment,
    get_environment,
    load_environment,
    reset_environment,
    set_environment,
)
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
    TypeConstraint,
)
from config.resolver import merge_options, resolve

__all__ = [
    # Options schema
    "OptionsSchema",
    "OptionSpec",
    "TypeConstraint",
    "AnyValue",
    "String",
    "Identifier",
    "SubscriberClass",
    "InstanceOf",
    "KeywordList",
    "OneOf",
    # Environment
    "CONFIG_PATH_ENV_VAR",
    "DictEnvironment",
    "EnvironmentFile",
    "YamlEnvironment",
    "load_environment",
    "get_environment",
    "set_environment",
    "reset_environment",
    # Resolution
    "resolve",
    "merge_options",
]
