"""Policy Tools — policies and policy-to-resource mappings."""

from typing import Any, Dict
from urllib.parse import quote

from okta_mcp import okta
from okta_mcp.tools import api_tool
from okta_mcp.tools.validation import require_value

NO_PERMISSION = "You do not have permission to perform this action. Check your API token permissions."


@api_tool(
    "list_policies",
    "List policies in Okta.",
    {
        "type": "object",
        "properties": {
            "type": {"type": "string", "description": "Policy type (optional)."},
            "status": {"type": "string", "description": "Policy status (optional)."},
            "q": {"type": "string", "description": "Search query (optional)."},
        },
    },
)
async def list_policies(args: Dict[str, Any]) -> Dict[str, Any]:
    params = {k: args.get(k) or None for k in ("type", "status", "q")}
    async with okta.connect() as client:
        policies = await client.get("/api/v1/policies", params=params)
    return {"success": True, "policies": policies}


@api_tool(
    "list_policy_mappings",
    "List all resources (apps) mapped to a policy in Okta.",
    {
        "type": "object",
        "properties": {"policyId": {"type": "string", "description": "The policy ID."}},
        "required": ["policyId"],
    },
)
async def list_policy_mappings(args: Dict[str, Any]) -> Dict[str, Any]:
    policy_id = require_value(args, "policyId")
    async with okta.connect() as client:
        mappings = await client.get(f"/api/v1/policies/{quote(policy_id, safe='')}/mappings")
    return {"success": True, "mappings": mappings}


@api_tool(
    "assign_policy_to_app",
    "Assign a policy to an application in Okta using PUT /api/v1/apps/{appId}/policies/{policyId}.",
    {
        "type": "object",
        "properties": {
            "policyId": {"type": "string", "description": "The policy ID to assign."},
            "appId": {"type": "string", "description": "The application ID to assign the policy to."},
        },
        "required": ["policyId", "appId"],
    },
)
async def assign_policy_to_app(args: Dict[str, Any]) -> Dict[str, Any]:
    policy_id = require_value(args, "policyId")
    app_id = require_value(args, "appId")
    suggestions = {
        400: "The policy may not be compatible with this application type or the application may "
        "already have a policy assigned.",
        404: "The application or policy may not exist or you may not have permission to access it.",
        403: NO_PERMISSION,
    }
    async with okta.connect() as client:
        await client.put(
            f"/api/v1/apps/{quote(app_id, safe='')}/policies/{quote(policy_id, safe='')}",
            suggestions=suggestions,
        )
    return {
        "success": True,
        "policyId": policy_id,
        "appId": app_id,
        "message": f"Policy '{policy_id}' successfully assigned to application '{app_id}'",
    }


@api_tool(
    "remove_policy_mapping",
    "Remove/delete a policy resource mapping in Okta using DELETE /api/v1/policies/{policyId}/mappings/{mappingId}. "
    "This removes the association between a policy and a resource (like an application).",
    {
        "type": "object",
        "properties": {
            "policyId": {"type": "string", "description": "The policy ID from which to remove the mapping."},
            "mappingId": {"type": "string", "description": "The mapping ID to remove."},
        },
        "required": ["policyId", "mappingId"],
    },
)
async def remove_policy_mapping(args: Dict[str, Any]) -> Dict[str, Any]:
    policy_id = require_value(args, "policyId")
    mapping_id = require_value(args, "mappingId")
    suggestions = {
        400: "The mapping may not exist or is invalid.",
        404: "The policy or mapping may not exist or you may not have permission to access it.",
        403: NO_PERMISSION,
    }
    async with okta.connect() as client:
        await client.delete(
            f"/api/v1/policies/{quote(policy_id, safe='')}/mappings/{quote(mapping_id, safe='')}",
            suggestions=suggestions,
        )
    return {
        "success": True,
        "policyId": policy_id,
        "mappingId": mapping_id,
        "message": f"Policy mapping '{mapping_id}' successfully removed from policy '{policy_id}'",
    }
