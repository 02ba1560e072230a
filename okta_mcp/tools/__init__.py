"""
Okta operation handlers

Modules:
  users         — 6 user lifecycle tools
  groups        — 9 group and group-membership tools
  applications  — 9 OIDC application and assignment tools
  policies      — 4 policy and policy-mapping tools

Each handler is an ApiTool registered under a "module:attribute" path.
TOOL_PATHS is the default ordered registry; Config.TOOL_PATHS overrides it.
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List

ToolFunction = Callable[[Dict[str, Any]], Awaitable[Any]]


@dataclass(frozen=True)
class ApiTool:
    """One invokable Okta operation: name, description, parameter schema, body."""

    name: str
    description: str
    parameters: Dict[str, Any]
    function: ToolFunction

    @property
    def required(self) -> List[str]:
        return list(self.parameters.get("required") or [])

    async def __call__(self, args: Dict[str, Any]) -> Any:
        return await self.function(args)


def api_tool(name: str, description: str, parameters: Dict[str, Any]) -> Callable[[ToolFunction], ApiTool]:
    """Decorator turning an async handler into an ApiTool."""

    def wrap(fn: ToolFunction) -> ApiTool:
        return ApiTool(name=name, description=description, parameters=parameters, function=fn)

    return wrap


# ── Default registry ─────────────────────────────────────────────────────────

TOOL_PATHS: List[str] = [
    # Users
    "okta_mcp.tools.users:list_users",
    "okta_mcp.tools.users:create_user",
    "okta_mcp.tools.users:get_user",
    "okta_mcp.tools.users:update_user",
    "okta_mcp.tools.users:activate_user",
    "okta_mcp.tools.users:deactivate_user",
    # Groups
    "okta_mcp.tools.groups:list_groups",
    "okta_mcp.tools.groups:create_group",
    "okta_mcp.tools.groups:get_group",
    "okta_mcp.tools.groups:update_group",
    "okta_mcp.tools.groups:add_user_to_group",
    "okta_mcp.tools.groups:remove_user_from_group",
    "okta_mcp.tools.groups:list_group_users",
    "okta_mcp.tools.groups:list_group_apps",
    "okta_mcp.tools.groups:assign_application_to_group",
    # Applications
    "okta_mcp.tools.applications:list_all_applications",
    "okta_mcp.tools.applications:create_application",
    "okta_mcp.tools.applications:update_application",
    "okta_mcp.tools.applications:assign_app_to_group",
    "okta_mcp.tools.applications:assign_user_to_app",
    "okta_mcp.tools.applications:list_app_group_assignments",
    "okta_mcp.tools.applications:list_app_user_assignments",
    "okta_mcp.tools.applications:remove_app_group_assignment",
    "okta_mcp.tools.applications:remove_app_user_assignment",
    # Policies
    "okta_mcp.tools.policies:list_policies",
    "okta_mcp.tools.policies:list_policy_mappings",
    "okta_mcp.tools.policies:assign_policy_to_app",
    "okta_mcp.tools.policies:remove_policy_mapping",
]
