"""
Deployment options for cloudfn functions.

Options come in two layers: global options set once per process with
set_global_options(), and options passed to each declaration. Both layers
are converted to the legacy trigger annotation shape and to the manifest
endpoint shape, then merged with the declaration's values winning.

Example:
    from cloudfn import set_global_options
    from cloudfn.https import on_request

    set_global_options({"region": "europe-west1", "labels": {"team": "web"}})

    @on_request({"memory": "512MiB", "labels": {"tier": "frontend"}})
    async def hello(request):
        return PlainTextResponse("hello")
"""

import copy
import logging
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Tuple

from .encoding import convert_if_present, copy_if_present, duration_from_seconds, is_present
from .errors import ConfigurationError

logger = logging.getLogger(__name__)

MEMORY_OPTION_TO_MB: Dict[str, int] = {
    "128MiB": 128,
    "256MiB": 256,
    "512MiB": 512,
    "1GiB": 1024,
    "2GiB": 2048,
    "4GiB": 4096,
    "8GiB": 8192,
}

INGRESS_SETTINGS = ("ALLOW_ALL", "ALLOW_INTERNAL_ONLY", "ALLOW_INTERNAL_AND_GCLB")
VPC_EGRESS_SETTINGS = ("PRIVATE_RANGES_ONLY", "ALL_TRAFFIC")

# Options accepted in every layer
GLOBAL_OPTION_KEYS: Tuple[str, ...] = (
    "region",
    "memory",
    "timeout_seconds",
    "min_instances",
    "max_instances",
    "concurrency",
    "ingress_settings",
    "vpc_connector",
    "vpc_connector_egress_settings",
    "service_account",
    "labels",
)
EVENT_HANDLER_OPTION_KEYS: Tuple[str, ...] = GLOBAL_OPTION_KEYS + ("retry",)
HTTPS_OPTION_KEYS: Tuple[str, ...] = GLOBAL_OPTION_KEYS

# Fields merged key-by-key across layers. Everything else is replaced
# wholesale by the later layer.
ADDITIVE_FIELDS: Tuple[str, ...] = ("labels",)

_INT_OPTIONS = ("timeout_seconds", "min_instances", "max_instances", "concurrency")
_STR_OPTIONS = ("vpc_connector", "service_account")

_global_options: Dict[str, Any] = {}


def _check_value(name: str, value: Any) -> None:
    if name == "region":
        regions = [value] if isinstance(value, str) else value
        if not isinstance(regions, (list, tuple)) or not all(
            isinstance(r, str) and r for r in regions
        ):
            raise ConfigurationError(f"region must be a string or a list of strings, got {value!r}")
    elif name == "memory":
        if value not in MEMORY_OPTION_TO_MB:
            raise ConfigurationError(
                f"Unsupported memory option {value!r}; "
                f"expected one of {', '.join(MEMORY_OPTION_TO_MB)}"
            )
    elif name in _INT_OPTIONS:
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ConfigurationError(f"{name} must be a non-negative integer, got {value!r}")
    elif name in _STR_OPTIONS:
        if not isinstance(value, str):
            raise ConfigurationError(f"{name} must be a string, got {value!r}")
    elif name == "ingress_settings":
        if value not in INGRESS_SETTINGS:
            raise ConfigurationError(f"Unsupported ingress_settings {value!r}")
    elif name == "vpc_connector_egress_settings":
        if value not in VPC_EGRESS_SETTINGS:
            raise ConfigurationError(f"Unsupported vpc_connector_egress_settings {value!r}")
    elif name == "labels":
        if not isinstance(value, Mapping) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in value.items()
        ):
            raise ConfigurationError("labels must be a mapping of strings to strings")
    elif name == "retry":
        if not isinstance(value, bool):
            raise ConfigurationError(f"retry must be a boolean, got {value!r}")


def validate_options(
    options: Optional[Mapping[str, Any]],
    allowed: Iterable[str] = GLOBAL_OPTION_KEYS,
) -> Dict[str, Any]:
    """
    Check an options mapping and return a copy of it.

    Args:
        options: Options to check (None is treated as empty)
        allowed: Option names accepted in this position

    Raises:
        ConfigurationError: On unknown option names or invalid values
    """
    if options is None:
        return {}
    if not isinstance(options, Mapping):
        raise ConfigurationError(f"Options must be a mapping, got {type(options).__name__}")

    allowed = tuple(allowed)
    unknown = sorted(set(options) - set(allowed))
    if unknown:
        raise ConfigurationError(f"Unknown option(s): {', '.join(unknown)}")

    for name, value in options.items():
        if value is not None:
            _check_value(name, value)
    return dict(options)


def set_global_options(options: Mapping[str, Any]) -> None:
    """Set the options that apply to every function declared afterwards"""
    global _global_options

    validated = copy.deepcopy(validate_options(options, GLOBAL_OPTION_KEYS))
    if _global_options:
        logger.warning("Global options were already set; replacing them")
    _global_options = validated
    logger.debug(f"Global options set: {sorted(validated)}")


def get_global_options() -> Dict[str, Any]:
    """Get a copy of the process-wide options"""
    return copy.deepcopy(_global_options)


def reset_global_options() -> None:
    """Clear global options (for testing)"""
    global _global_options
    _global_options = {}


def _regions(region: Any) -> list:
    return [region] if isinstance(region, str) else list(region)


def options_to_trigger_annotations(options: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Convert options to the fields of a legacy trigger annotation"""
    opts = options or {}
    annotation: Dict[str, Any] = {}

    copy_if_present(annotation, opts, "concurrency")
    convert_if_present(annotation, opts, "minInstances", "min_instances")
    convert_if_present(annotation, opts, "maxInstances", "max_instances")
    convert_if_present(annotation, opts, "ingressSettings", "ingress_settings")
    convert_if_present(annotation, opts, "labels", "labels", dict)
    convert_if_present(annotation, opts, "vpcConnector", "vpc_connector")
    convert_if_present(
        annotation, opts, "vpcConnectorEgressSettings", "vpc_connector_egress_settings"
    )
    convert_if_present(annotation, opts, "availableMemoryMb", "memory", MEMORY_OPTION_TO_MB.get)
    convert_if_present(annotation, opts, "regions", "region", _regions)
    convert_if_present(annotation, opts, "serviceAccountEmail", "service_account")
    convert_if_present(annotation, opts, "timeout", "timeout_seconds", duration_from_seconds)
    if opts.get("retry"):
        annotation["failurePolicy"] = {"retry": True}

    return annotation


def options_to_endpoint(options: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Convert options to the fields of a manifest endpoint"""
    opts = options or {}
    endpoint: Dict[str, Any] = {}

    copy_if_present(endpoint, opts, "concurrency")
    convert_if_present(endpoint, opts, "minInstances", "min_instances")
    convert_if_present(endpoint, opts, "maxInstances", "max_instances")
    convert_if_present(endpoint, opts, "ingressSettings", "ingress_settings")
    convert_if_present(endpoint, opts, "labels", "labels", dict)
    convert_if_present(endpoint, opts, "timeoutSeconds", "timeout_seconds")
    convert_if_present(endpoint, opts, "serviceAccountEmail", "service_account")
    if is_present(opts, "vpc_connector"):
        vpc: Dict[str, Any] = {"connector": opts["vpc_connector"]}
        convert_if_present(vpc, opts, "egressSettings", "vpc_connector_egress_settings")
        endpoint["vpc"] = vpc
    convert_if_present(endpoint, opts, "availableMemoryMb", "memory", MEMORY_OPTION_TO_MB.get)
    convert_if_present(endpoint, opts, "region", "region", _regions)

    return endpoint


def merge_fragments(
    base: Optional[Mapping[str, Any]],
    specific: Optional[Mapping[str, Any]],
) -> Dict[str, Any]:
    """
    Merge two converted option fragments.

    Fields in specific replace fields in base, except ADDITIVE_FIELDS which
    are merged key by key with specific's keys winning. The result always
    has every additive field, possibly empty.
    """
    base = base or {}
    specific = specific or {}

    merged = {**base, **specific}
    for name in ADDITIVE_FIELDS:
        merged[name] = {**(base.get(name) or {}), **(specific.get(name) or {})}
    return merged


def merge_trigger_annotations(
    global_options: Optional[Mapping[str, Any]],
    specific_options: Optional[Mapping[str, Any]],
) -> Dict[str, Any]:
    """Merge two option layers into trigger annotation fields"""
    return merge_fragments(
        options_to_trigger_annotations(global_options),
        options_to_trigger_annotations(specific_options),
    )


def merge_endpoints(
    global_options: Optional[Mapping[str, Any]],
    specific_options: Optional[Mapping[str, Any]],
) -> Dict[str, Any]:
    """Merge two option layers into manifest endpoint fields"""
    return merge_fragments(
        options_to_endpoint(global_options),
        options_to_endpoint(specific_options),
    )


def normalize_declaration(
    options_or_handler: Any,
    handler: Optional[Callable] = None,
) -> Tuple[Dict[str, Any], Optional[Callable]]:
    """
    Turn the arguments of a declaration into an (options, handler) pair.

    Accepts (handler), (options, handler) and (options) alone. In the last
    case the returned handler is None and the caller should return a
    decorator.
    """
    if handler is None and callable(options_or_handler) and not isinstance(
        options_or_handler, Mapping
    ):
        return {}, options_or_handler

    if options_or_handler is None:
        options: Dict[str, Any] = {}
    elif isinstance(options_or_handler, Mapping):
        options = dict(options_or_handler)
    else:
        raise ConfigurationError(
            f"Expected an options mapping or a handler, got {type(options_or_handler).__name__}"
        )

    if handler is not None and not callable(handler):
        raise ConfigurationError(f"Handler must be callable, got {type(handler).__name__}")
    return options, handler
