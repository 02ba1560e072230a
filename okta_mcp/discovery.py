"""
Tool Discovery — build the handler table from registry entries

Registry entries are "module:attribute" strings. Each attribute must be an
ApiTool, or a mapping shaped {"definition": {...}, "function": callable}
where the definition carries name, description and an object parameter
schema (optionally nested under "function").

Discovery is best-effort: entries that fail to import, lack the attribute,
or carry an invalid definition are logged and skipped.
"""

import fnmatch
import importlib
from typing import Any, Dict, Iterable, List, Optional

from .config import Config
from .logger import get_logger
from .tools import TOOL_PATHS, ApiTool

log = get_logger("discovery")


class ToolLoadError(Exception):
    """A registry entry could not be turned into an ApiTool."""


def registry_paths() -> List[str]:
    """Configured registry, falling back to the built-in ordered list."""
    return list(Config.TOOL_PATHS or TOOL_PATHS)


def coerce_tool(obj: Any, path: str = "<inline>") -> ApiTool:
    """Validate a loaded registry object and return it as an ApiTool."""
    if isinstance(obj, ApiTool):
        tool = obj
    elif isinstance(obj, dict):
        definition = obj.get("definition") or {}
        if isinstance(definition.get("function"), dict):
            definition = definition["function"]
        tool = ApiTool(
            name=definition.get("name") or "",
            description=definition.get("description") or "",
            parameters=definition.get("parameters"),
            function=obj.get("function"),
        )
    else:
        raise ToolLoadError(f"{path} is not a tool definition ({type(obj).__name__})")

    if not isinstance(tool.name, str) or not tool.name:
        raise ToolLoadError(f"{path} has no tool name")
    if not isinstance(tool.parameters, dict) or tool.parameters.get("type") != "object":
        raise ToolLoadError(f"{path} ({tool.name}) has no object parameter schema")
    if not callable(tool.function):
        raise ToolLoadError(f"{path} ({tool.name}) has no callable function")
    return tool


def load_tool(path: str) -> ApiTool:
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise ToolLoadError(f"Invalid registry entry '{path}' (expected module:attribute)")

    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ToolLoadError(f"Tool module not available: {module_name} ({exc})") from exc

    try:
        obj = getattr(module, attr)
    except AttributeError as exc:
        raise ToolLoadError(f"Module {module_name} has no attribute {attr}") from exc

    return coerce_tool(obj, path)


def discover_tools(paths: Optional[Iterable[str]] = None) -> List[ApiTool]:
    """
    Load every registry entry in order, skipping failures.

    Returns a list in registry order. Later duplicates of an
    already-loaded name are skipped so lookups by name stay unambiguous.
    """
    tools: List[ApiTool] = []
    seen = set()

    for path in registry_paths() if paths is None else paths:
        try:
            tool = load_tool(path)
        except ToolLoadError as exc:
            log.warning(f"Skipping {path}: {exc}")
            continue
        except Exception as exc:
            log.error(f"Error loading {path}: {exc}")
            continue

        if tool.name in seen:
            log.warning(f"Skipping {path}: duplicate tool name {tool.name}")
            continue
        seen.add(tool.name)
        tools.append(tool)
        log.debug(f"Loaded {tool.name} from {path}")

    log.info(f"Discovered {len(tools)} tools")
    return tools


def filter_tools(tools: List[ApiTool], pattern: str = "*") -> List[ApiTool]:
    """Keep tools whose name matches any comma-separated glob in pattern."""
    globs = [p.strip() for p in (pattern or "*").split(",") if p.strip()] or ["*"]
    return [t for t in tools if any(fnmatch.fnmatchcase(t.name, g) for g in globs)]


def transform_tools(tools: Iterable[Any]) -> List[Dict[str, Any]]:
    """Map handler records onto the advertised {name, description, inputSchema} shape."""
    listed = []
    for tool in tools:
        if not isinstance(tool, ApiTool) or not tool.name:
            log.warning(f"Dropping tool without a definition from listing: {tool!r}")
            continue
        listed.append({
            "name": tool.name,
            "description": tool.description,
            "inputSchema": tool.parameters,
        })
    return listed
