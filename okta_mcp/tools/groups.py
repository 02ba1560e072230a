"""
Group Tools — groups, memberships and group app assignments

9 tools:
  list_groups, create_group, get_group, update_group,
  add_user_to_group, remove_user_from_group, list_group_users,
  list_group_apps, assign_application_to_group
"""

from typing import Any, Dict, List
from urllib.parse import quote

from okta_mcp import okta
from okta_mcp.logger import get_logger
from okta_mcp.tools import api_tool
from okta_mcp.tools.validation import clamp_int, require_value

log = get_logger("tools.groups")

GROUP_ID = {"type": "string", "description": "The group ID."}


def _group_path(group_id: str, *rest: str) -> str:
    parts = [quote(group_id, safe="")] + [quote(p, safe="") for p in rest]
    return "/api/v1/groups/" + "/".join(parts)


@api_tool(
    "list_groups",
    "List groups in an Okta organization.",
    {
        "type": "object",
        "properties": {
            "q": {"type": "string", "description": "The search query for groups.", "default": ""},
            "filter": {"type": "string", "description": 'Filter expression for groups (e.g., type eq "BUILT_IN").'},
            "after": {"type": "string", "description": "The pagination cursor for the next page of results."},
            "limit": {"type": "integer", "description": "The number of results per page.", "default": 200},
            "sortBy": {"type": "string", "description": "The field to sort by."},
            "sortOrder": {"type": "string", "description": "The sort order (asc or desc).", "enum": ["asc", "desc"]},
            "expand": {"type": "string", "description": "An optional parameter for expanding group details."},
        },
        "required": [],
    },
)
async def list_groups(args: Dict[str, Any]) -> List[Dict[str, Any]]:
    q = args.get("q") or ""
    params = {
        "q": q or None,
        "filter": args.get("filter") or None,
        "after": args.get("after") or None,
        "limit": clamp_int(args.get("limit"), 200, 1, 10000),
        "sortBy": args.get("sortBy") or None,
        "sortOrder": args.get("sortOrder") or None,
        "expand": args.get("expand") or None,
    }
    async with okta.connect() as client:
        groups = await client.get("/api/v1/groups", params=params)

    if not q or "everyone" in q.lower():
        everyone = next((g for g in groups if (g.get("profile") or {}).get("name") == "Everyone"), None)
        if everyone:
            log.debug(f"Everyone group: {everyone.get('id')}")
    return groups


@api_tool(
    "create_group",
    "Create a new group in Okta.",
    {
        "type": "object",
        "properties": {
            "name": {"type": "string", "description": "The group name."},
            "description": {"type": "string", "description": "The group description."},
        },
        "required": ["name"],
    },
)
async def create_group(args: Dict[str, Any]) -> Dict[str, Any]:
    name = require_value(args, "name")
    body = {"profile": {"name": name, "description": args.get("description") or ""}}
    async with okta.connect() as client:
        group = await client.post("/api/v1/groups", body=body)
    log.info(f"Created group {name} ({group.get('id')})")
    return {"success": True, "group": group}


@api_tool(
    "get_group",
    "Get details for a group in Okta.",
    {"type": "object", "properties": {"groupId": GROUP_ID}, "required": ["groupId"]},
)
async def get_group(args: Dict[str, Any]) -> Dict[str, Any]:
    group_id = require_value(args, "groupId")
    async with okta.connect() as client:
        group = await client.get(_group_path(group_id))
    return {"success": True, "group": group}


@api_tool(
    "update_group",
    "Update a group in Okta.",
    {
        "type": "object",
        "properties": {
            "groupId": GROUP_ID,
            "name": {"type": "string", "description": "The new group name."},
            "description": {"type": "string", "description": "The new group description."},
        },
        "required": ["groupId", "name"],
    },
)
async def update_group(args: Dict[str, Any]) -> Dict[str, Any]:
    group_id = require_value(args, "groupId")
    name = require_value(args, "name")
    body = {"profile": {"name": name, "description": args.get("description") or ""}}
    async with okta.connect() as client:
        group = await client.put(_group_path(group_id), body=body)
    return {"success": True, "group": group}


@api_tool(
    "add_user_to_group",
    "Add a user to a group in Okta.",
    {
        "type": "object",
        "properties": {
            "groupId": GROUP_ID,
            "userId": {"type": "string", "description": "The user ID to add."},
        },
        "required": ["groupId", "userId"],
    },
)
async def add_user_to_group(args: Dict[str, Any]) -> Dict[str, Any]:
    group_id = require_value(args, "groupId")
    user_id = require_value(args, "userId")
    async with okta.connect() as client:
        await client.put(_group_path(group_id, "users", user_id))
    return {"success": True}


@api_tool(
    "remove_user_from_group",
    "Remove a user from a group in Okta.",
    {
        "type": "object",
        "properties": {
            "groupId": GROUP_ID,
            "userId": {"type": "string", "description": "The user ID to remove."},
        },
        "required": ["groupId", "userId"],
    },
)
async def remove_user_from_group(args: Dict[str, Any]) -> Dict[str, Any]:
    group_id = require_value(args, "groupId")
    user_id = require_value(args, "userId")
    async with okta.connect() as client:
        await client.delete(_group_path(group_id, "users", user_id))
    return {"success": True}


@api_tool(
    "list_group_users",
    "List all users in a group in Okta.",
    {"type": "object", "properties": {"groupId": GROUP_ID}, "required": ["groupId"]},
)
async def list_group_users(args: Dict[str, Any]) -> Dict[str, Any]:
    group_id = require_value(args, "groupId")
    async with okta.connect() as client:
        users = await client.get(_group_path(group_id, "users"))
    return {"success": True, "users": users}


@api_tool(
    "list_group_apps",
    "List all applications assigned to a group in Okta.",
    {
        "type": "object",
        "properties": {
            "groupId": GROUP_ID,
            "after": {"type": "string", "description": "Pagination cursor (optional)."},
            "limit": {"type": "integer", "description": "Results per page (optional)."},
        },
        "required": ["groupId"],
    },
)
async def list_group_apps(args: Dict[str, Any]) -> Dict[str, Any]:
    group_id = require_value(args, "groupId")
    params = {"after": args.get("after") or None, "limit": args.get("limit") or None}
    async with okta.connect() as client:
        apps = await client.get(_group_path(group_id, "apps"), params=params)
    return {"success": True, "apps": apps}


@api_tool(
    "assign_application_to_group",
    "Assign an application to a group in Okta.",
    {
        "type": "object",
        "properties": {
            "appId": {"type": "string", "description": "The ID of the application to assign."},
            "groupId": {"type": "string", "description": "The ID of the group to assign the application to."},
            "priority": {
                "type": "integer",
                "description": "Priority of the assignment (0-100, lower number = higher priority).",
                "minimum": 0,
                "maximum": 100,
                "default": 0,
            },
            "profile": {
                "type": "object",
                "description": "Application-specific profile properties for the group assignment.",
                "default": {},
            },
        },
        "required": ["appId", "groupId"],
    },
)
async def assign_application_to_group(args: Dict[str, Any]) -> Dict[str, Any]:
    app_id = require_value(args, "appId")
    group_id = require_value(args, "groupId")
    body = {"priority": args.get("priority") or 0, "profile": args.get("profile") or {}}

    async with okta.connect() as client:
        data = await client.put(f"/api/v1/apps/{quote(app_id, safe='')}/groups/{quote(group_id, safe='')}", body=body)

    return {
        "id": data.get("id"),
        "lastUpdated": data.get("lastUpdated"),
        "priority": data.get("priority"),
        "profile": data.get("profile"),
        "_links": data.get("_links"),
        "message": f"Successfully assigned application {app_id} to group {group_id}",
    }
