"""
Manifest of declared functions.

Collects the endpoints of every function declared in a source tree and
serializes them into the manifest read by deployment tooling.
"""

import importlib
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from types import ModuleType
from typing import Any, Dict, List, Mapping

import yaml

from .pubsub import MESSAGE_PUBLISHED_EVENT
from .types import CloudFunction, ManifestEndpoint

logger = logging.getLogger(__name__)

SPEC_VERSION = "v1alpha1"

# APIs that must be enabled for endpoints with a given event type
_EVENT_TYPE_APIS = {
    MESSAGE_PUBLISHED_EVENT: ("pubsub.googleapis.com", "Pub/Sub triggers"),
}


@dataclass
class ManifestRequiredAPI:
    api: str
    reason: str


@dataclass
class ManifestStack:
    """All endpoints of a codebase plus the APIs they need"""
    endpoints: Dict[str, ManifestEndpoint] = field(default_factory=dict)
    required_apis: List[ManifestRequiredAPI] = field(default_factory=list)
    spec_version: str = SPEC_VERSION

    def to_dict(self) -> Dict[str, Any]:
        return {
            "specVersion": self.spec_version,
            "endpoints": self.endpoints,
            "requiredAPIs": [
                {"api": r.api, "reason": r.reason} for r in self.required_apis
            ],
        }


def functions_in_module(module: ModuleType) -> Dict[str, CloudFunction]:
    """Get the declared functions bound at the top level of a module"""
    return {
        name: value
        for name, value in vars(module).items()
        if isinstance(value, CloudFunction) and not name.startswith("_")
    }


def discover_functions(source_dir: str, module_name: str = "functions") -> Dict[str, CloudFunction]:
    """
    Discover all declared functions in a source directory.

    Args:
        source_dir: Path to the source directory
        module_name: Package or module holding the functions

    Returns:
        Mapping of function name to declared function

    Raises:
        FileNotFoundError: If neither a package nor a module of that name exists
    """
    if source_dir not in sys.path:
        sys.path.insert(0, source_dir)

    functions: Dict[str, CloudFunction] = {}
    functions_dir = Path(source_dir) / module_name
    if not functions_dir.is_dir():
        module_file = Path(source_dir) / f"{module_name}.py"
        if not module_file.exists():
            raise FileNotFoundError(f"Functions module not found: {functions_dir}")
        functions.update(functions_in_module(importlib.import_module(module_name)))
        return functions

    # Import every module of the package
    functions.update(functions_in_module(importlib.import_module(module_name)))
    for py_file in sorted(functions_dir.glob("**/*.py")):
        if py_file.name.startswith("_"):
            continue

        rel_path = py_file.relative_to(source_dir)
        module_path = ".".join(rel_path.with_suffix("").parts)
        module = importlib.import_module(module_path)
        for name, func in functions_in_module(module).items():
            if name in functions and functions[name] is not func:
                logger.warning(f"Function {name!r} in {module_path} shadows an earlier declaration")
            functions[name] = func

    return functions


def build_manifest_stack(functions: Mapping[str, CloudFunction]) -> ManifestStack:
    """Build a manifest stack from declared functions, keyed by name"""
    stack = ManifestStack()
    seen_apis = set()

    for name in sorted(functions):
        endpoint = functions[name].endpoint
        stack.endpoints[name] = endpoint

        event_type = endpoint.get("eventTrigger", {}).get("eventType")
        if event_type in _EVENT_TYPE_APIS:
            api, reason = _EVENT_TYPE_APIS[event_type]
            if api not in seen_apis:
                seen_apis.add(api)
                stack.required_apis.append(ManifestRequiredAPI(api=api, reason=reason))

    return stack


def stack_to_yaml(stack: ManifestStack) -> str:
    """Serialize a manifest stack as YAML"""
    return yaml.safe_dump(stack.to_dict(), sort_keys=False)
