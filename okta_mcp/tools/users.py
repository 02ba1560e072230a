"""
User Tools — lifecycle management under /api/v1/users

6 tools:
  list_users, create_user, get_user, update_user,
  activate_user, deactivate_user
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional
from urllib.parse import quote

from okta_mcp import okta
from okta_mcp.logger import get_logger
from okta_mcp.okta import OktaAPIError
from okta_mcp.tools import api_tool
from okta_mcp.tools.validation import (
    ToolInputError,
    check_email,
    clamp_int,
    missing_fields,
    require_value,
)

log = get_logger("tools.users")

USER_ID_HINT = "can be user ID, login, or email"
USER_ID_SCHEMA = {
    "type": "string",
    "description": "User identifier - can be user ID (00u...), login, or email address",
}

ACTIVATABLE = ["STAGED", "PROVISIONED", "DEPROVISIONED", "SUSPENDED"]
DEACTIVATABLE = ["ACTIVE", "STAGED", "PROVISIONED", "SUSPENDED", "PASSWORD_EXPIRED", "LOCKED_OUT", "RECOVERY"]

PROFILE_EXTRAS = ["department", "title", "manager", "mobilePhone", "organization", "city", "state", "zipCode", "countryCode"]


def _user_path(user_id: str) -> str:
    return f"/api/v1/users/{quote(user_id, safe='')}"


def _profile_view(profile: Dict[str, Any], *extra: str) -> Dict[str, Any]:
    keys = ["login", "email", "firstName", "lastName", "displayName", *extra]
    return {k: profile.get(k) for k in keys}


def _provider(user: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    creds = user.get("credentials")
    return {"provider": creds.get("provider")} if creds else None


def _days_since(stamp: Optional[str]) -> Optional[int]:
    if not stamp:
        return None
    then = datetime.fromisoformat(stamp.replace("Z", "+00:00"))
    return (datetime.now(timezone.utc) - then).days


def _with_suggestion(exc: OktaAPIError, suggestion: str) -> OktaAPIError:
    return OktaAPIError(exc.status_code, exc.payload, suggestion)


def _write_suggestion(exc: OktaAPIError, verb: str) -> str:
    text = str(exc.payload)
    if exc.status_code == 400:
        if "login" in text:
            return "The login/username already exists or is invalid. Try a different login."
        if "email" in text:
            return "The email address is already in use or invalid format."
        if "password" in text:
            return "Password does not meet complexity requirements. Try a stronger password."
        return ""
    if exc.status_code == 403:
        return f"Insufficient permissions to {verb} users. Check your API token permissions."
    if exc.status_code == 409:
        return "Conflict with existing data. Login or email may already be in use."
    return ""


async def _fetch_user(client: okta.OktaClient, user_id: str) -> Dict[str, Any]:
    return await client.get(
        _user_path(user_id),
        suggestions={404: f"User not found: {user_id}. Check the user ID, login, or email."},
    )


# ── list_users ───────────────────────────────────────────────────────────────

@api_tool(
    "list_users",
    "List users in an Okta organization with advanced filtering, search, and pagination capabilities. "
    "Supports quick search and SCIM filters.",
    {
        "type": "object",
        "properties": {
            "q": {
                "type": "string",
                "description": 'Simple search query across firstName, lastName, and email fields. Example: "john.doe"',
            },
            "after": {
                "type": "string",
                "description": "Pagination cursor for the next page of results (returned in previous response)",
            },
            "limit": {
                "type": "integer",
                "description": "Number of results per page (1-200, default 200)",
                "minimum": 1,
                "maximum": 200,
                "default": 200,
            },
            "filter": {
                "type": "string",
                "description": "Advanced filter expression. Examples: 'status eq \"ACTIVE\"', 'profile.department eq \"Engineering\"'",
            },
            "search": {
                "type": "string",
                "description": "SCIM-compliant search expression for complex queries",
            },
        },
        "required": [],
    },
)
async def list_users(args: Dict[str, Any]) -> Dict[str, Any]:
    limit = clamp_int(args.get("limit"), 200, 1, 200)
    params = {
        "q": args.get("q") or None,
        "after": args.get("after") or None,
        "limit": limit,
        "filter": args.get("filter") or None,
        "search": args.get("search") or None,
    }

    async with okta.connect() as client:
        resp = await client.send("GET", "/api/v1/users", params=params)
    users = resp.json()

    active = sum(1 for u in users if u.get("status") == "ACTIVE")
    has_more = 'rel="next"' in resp.headers.get("link", "")
    log.info(f"list_users: {len(users)} users ({active} active)")

    return {
        "users": [
            {
                "id": u.get("id"),
                "status": u.get("status"),
                "created": u.get("created"),
                "activated": u.get("activated"),
                "lastLogin": u.get("lastLogin"),
                "lastUpdated": u.get("lastUpdated"),
                "profile": _profile_view(u.get("profile") or {}, "department", "title", "manager", "mobilePhone"),
                "credentials": _provider(u),
                "_links": u.get("_links"),
            }
            for u in users
        ],
        "summary": {
            "totalUsers": len(users),
            "activeUsers": active,
            "inactiveUsers": len(users) - active,
            "hasMore": has_more,
        },
        "pagination": {"limit": limit, "after": args.get("after"), "hasMore": has_more},
    }


# ── create_user ──────────────────────────────────────────────────────────────

_PROFILE_PROPERTIES = {
    "login": {"type": "string", "description": "User's unique login identifier (typically email address)"},
    "email": {"type": "string", "format": "email", "description": "User's email address"},
    "firstName": {"type": "string", "description": "User's first name"},
    "lastName": {"type": "string", "description": "User's last name"},
    "displayName": {"type": "string", "description": "User's display name (auto-generated if not provided)"},
    "department": {"type": "string", "description": "User's department"},
    "title": {"type": "string", "description": "User's job title"},
    "manager": {"type": "string", "description": "User's manager"},
    "mobilePhone": {"type": "string", "description": "User's mobile phone number"},
    "organization": {"type": "string", "description": "User's organization"},
    "city": {"type": "string", "description": "User's city"},
    "state": {"type": "string", "description": "User's state or province"},
    "zipCode": {"type": "string", "description": "User's ZIP or postal code"},
    "countryCode": {"type": "string", "description": "User's country code"},
}

_RECOVERY_QUESTION = {
    "type": "object",
    "description": "Security question for password recovery",
    "properties": {
        "question": {"type": "string", "description": "Recovery question"},
        "answer": {"type": "string", "description": "Answer to recovery question"},
    },
    "required": ["question", "answer"],
}

_PASSWORD = {
    "type": "object",
    "description": "Password information",
    "properties": {"value": {"type": "string", "description": "Plain text password"}},
    "required": ["value"],
}


@api_tool(
    "create_user",
    "Create a new user in Okta with comprehensive profile information and optional credentials. "
    "Supports automatic activation.",
    {
        "type": "object",
        "properties": {
            "profile": {
                "type": "object",
                "description": "User profile information",
                "properties": _PROFILE_PROPERTIES,
                "required": ["login", "email", "firstName", "lastName"],
            },
            "credentials": {
                "type": "object",
                "description": "User credentials (optional)",
                "properties": {"password": _PASSWORD, "recovery_question": _RECOVERY_QUESTION},
            },
            "activate": {
                "type": "boolean",
                "description": "Whether to activate the user immediately (default: true)",
                "default": True,
            },
            "nextLogin": {
                "type": "string",
                "description": "Behavior on next login",
                "enum": ["changePassword"],
            },
        },
        "required": ["profile"],
    },
)
async def create_user(args: Dict[str, Any]) -> Dict[str, Any]:
    profile = args.get("profile")
    if not profile:
        raise ToolInputError("Profile object is required")

    missing = missing_fields(profile, ["login", "email", "firstName", "lastName"])
    if missing:
        raise ToolInputError(f"Missing required profile fields: {', '.join(missing)}")
    check_email(profile["email"])

    display_name = profile.get("displayName") or f"{profile['firstName']} {profile['lastName']}"
    body: Dict[str, Any] = {
        "profile": {
            "login": profile["login"],
            "email": profile["email"],
            "firstName": profile["firstName"],
            "lastName": profile["lastName"],
            "displayName": display_name,
        }
    }
    body["profile"].update({k: profile[k] for k in PROFILE_EXTRAS if profile.get(k)})

    credentials = args.get("credentials")
    if credentials:
        body["credentials"] = {}
        if credentials.get("password"):
            body["credentials"]["password"] = {"value": credentials["password"].get("value")}
        if credentials.get("recovery_question"):
            body["credentials"]["recovery_question"] = credentials["recovery_question"]

    activate = args.get("activate", True)
    params = {"activate": bool(activate), "nextLogin": args.get("nextLogin") or None}

    async with okta.connect() as client:
        try:
            user = await client.post("/api/v1/users", params=params, body=body)
        except OktaAPIError as exc:
            raise _with_suggestion(exc, _write_suggestion(exc, "create")) from exc

    log.info(f"Created user {user['profile']['login']} ({user.get('status')})")
    return {
        "id": user.get("id"),
        "status": user.get("status"),
        "created": user.get("created"),
        "activated": user.get("activated"),
        "lastUpdated": user.get("lastUpdated"),
        "profile": _profile_view(user["profile"], "department", "title", "manager", "mobilePhone"),
        "credentials": _provider(user),
        "_links": user.get("_links"),
        "message": f"User '{user['profile']['login']}' created successfully with status '{user.get('status')}'",
    }


# ── get_user ─────────────────────────────────────────────────────────────────

@api_tool(
    "get_user",
    "Fetch detailed information about a specific user in Okta. Supports lookup by user ID, login, "
    "or email address. Returns comprehensive profile and activity information.",
    {
        "type": "object",
        "properties": {"userId": USER_ID_SCHEMA},
        "required": ["userId"],
    },
)
async def get_user(args: Dict[str, Any]) -> Dict[str, Any]:
    user_id = require_value(args, "userId", USER_ID_HINT)

    async with okta.connect() as client:
        user = await _fetch_user(client, user_id)

    return {
        "id": user.get("id"),
        "status": user.get("status"),
        "created": user.get("created"),
        "activated": user.get("activated"),
        "statusChanged": user.get("statusChanged"),
        "lastLogin": user.get("lastLogin"),
        "lastUpdated": user.get("lastUpdated"),
        "passwordChanged": user.get("passwordChanged"),
        "profile": user.get("profile"),
        "credentials": _provider(user),
        "type": user.get("type"),
        "transitioningToStatus": user.get("transitioningToStatus"),
        "_links": user.get("_links"),
        "activityInfo": {
            "daysSinceLastLogin": _days_since(user.get("lastLogin")),
            "isActive": user.get("status") == "ACTIVE",
            "hasLoggedIn": bool(user.get("lastLogin")),
            "accountAge": _days_since(user.get("created")),
        },
    }


# ── update_user ──────────────────────────────────────────────────────────────

@api_tool(
    "update_user",
    "Update a user's profile and/or credentials in Okta. Supports partial updates and merges changes "
    "with existing profile data. Provides detailed change summary.",
    {
        "type": "object",
        "properties": {
            "userId": USER_ID_SCHEMA,
            "profile": {
                "type": "object",
                "description": "Profile fields to update (partial updates supported)",
                "properties": {
                    **_PROFILE_PROPERTIES,
                    "managerId": {"type": "string", "description": "User's manager ID"},
                    "primaryPhone": {"type": "string", "description": "User's primary phone number"},
                    "secondEmail": {"type": "string", "description": "User's secondary email address"},
                    "timezone": {"type": "string", "description": "User's timezone"},
                    "locale": {"type": "string", "description": "User's locale"},
                    "preferredLanguage": {"type": "string", "description": "User's preferred language"},
                    "userType": {"type": "string", "description": "User's type"},
                    "employeeNumber": {"type": "string", "description": "User's employee number"},
                    "costCenter": {"type": "string", "description": "User's cost center"},
                    "division": {"type": "string", "description": "User's division"},
                },
            },
            "credentials": {
                "type": "object",
                "description": "User credentials to update (optional)",
                "properties": {
                    "password": _PASSWORD,
                    "provider": {
                        "type": "object",
                        "description": "Authentication provider information",
                        "properties": {
                            "type": {
                                "type": "string",
                                "enum": ["OKTA", "ACTIVE_DIRECTORY", "LDAP", "FEDERATION", "SOCIAL", "IMPORT"],
                                "description": "Provider type",
                            },
                            "name": {"type": "string", "description": "Provider name"},
                        },
                    },
                    "recovery_question": _RECOVERY_QUESTION,
                },
            },
            "strict": {
                "type": "boolean",
                "description": "Whether to use strict update semantics (default: false)",
                "default": False,
            },
        },
        "required": ["userId"],
    },
)
async def update_user(args: Dict[str, Any]) -> Dict[str, Any]:
    user_id = require_value(args, "userId", USER_ID_HINT)
    profile = args.get("profile")
    credentials = args.get("credentials")
    strict = bool(args.get("strict", False))

    if not profile and not credentials:
        raise ToolInputError("Either profile or credentials must be provided")
    if profile and profile.get("email"):
        check_email(profile["email"])

    async with okta.connect() as client:
        current = await _fetch_user(client, user_id)

        body: Dict[str, Any] = {"profile": {**current.get("profile", {}), **(profile or {})}}
        if credentials:
            body["credentials"] = {}
            if credentials.get("password"):
                body["credentials"]["password"] = {"value": credentials["password"].get("value")}
            for key in ("provider", "recovery_question"):
                if credentials.get(key):
                    body["credentials"][key] = credentials[key]

        try:
            updated = await client.put(
                _user_path(user_id),
                params={"strict": "true" if strict else None},
                body=body,
            )
        except OktaAPIError as exc:
            raise _with_suggestion(exc, _write_suggestion(exc, "update")) from exc

    before = current.get("profile", {})
    after = updated.get("profile", {})
    changed = [k for k in (profile or {}) if before.get(k) != after.get(k)]

    return {
        "id": updated.get("id"),
        "status": updated.get("status"),
        "created": updated.get("created"),
        "activated": updated.get("activated"),
        "lastUpdated": updated.get("lastUpdated"),
        "profile": _profile_view(after, *PROFILE_EXTRAS),
        "credentials": _provider(updated),
        "_links": updated.get("_links"),
        "updateSummary": {"changedFields": changed, "totalChanges": len(changed), "strictMode": strict},
        "message": (
            f"User '{after.get('login')}' updated successfully. "
            f"{len(changed)} field(s) changed: {', '.join(changed)}"
        ),
    }


# ── activate_user / deactivate_user ──────────────────────────────────────────

def _unchanged(user: Dict[str, Any], state: str, status: str) -> Dict[str, Any]:
    login = user["profile"].get("login")
    return {
        "id": user.get("id"),
        "status": user.get("status"),
        "profile": _profile_view(user["profile"]),
        "message": f"User '{login}' is already {state}",
        "warning": f"No action taken - user was already in {status} status",
    }


@api_tool(
    "activate_user",
    "Activate a user in Okta, transitioning them to ACTIVE status. Checks current status and provides "
    "detailed feedback. Optionally sends activation email with login instructions.",
    {
        "type": "object",
        "properties": {
            "userId": USER_ID_SCHEMA,
            "sendEmail": {
                "type": "boolean",
                "description": "Whether to send an activation email with login instructions to the user (default: true)",
                "default": True,
            },
        },
        "required": ["userId"],
    },
)
async def activate_user(args: Dict[str, Any]) -> Dict[str, Any]:
    user_id = require_value(args, "userId", USER_ID_HINT)
    send_email = bool(args.get("sendEmail", True))

    async with okta.connect() as client:
        current = await _fetch_user(client, user_id)
        status = current.get("status")
        if status == "ACTIVE":
            return _unchanged(current, "active", "ACTIVE")
        if status not in ACTIVATABLE:
            raise ToolInputError(
                f"Cannot activate user with status '{status}'. User must be in one of: {', '.join(ACTIVATABLE)}"
            )

        suggestions = {
            403: "Insufficient permissions to activate users. Check your API token permissions.",
            400: "User cannot be activated in current state. Check user status and dependencies.",
        }
        activation = await client.post(
            f"{_user_path(user_id)}/lifecycle/activate",
            params={"sendEmail": send_email},
            suggestions=suggestions,
        )
        # The lifecycle call answers with {} or an activation token, never the user
        user = await _fetch_user(client, user_id)

    login = user["profile"].get("login")
    log.info(f"Activated {login}: {status} -> {user.get('status')}")
    return {
        "id": user.get("id"),
        "status": user.get("status"),
        "previousStatus": status,
        "statusChanged": user.get("statusChanged"),
        "activated": user.get("activated"),
        "lastUpdated": user.get("lastUpdated"),
        "profile": _profile_view(user["profile"], "department", "title"),
        "_links": user.get("_links"),
        "activationSummary": {
            "emailSent": send_email,
            "previousStatus": status,
            "newStatus": user.get("status"),
            "activatedDate": user.get("activated"),
            "canLogin": user.get("status") == "ACTIVE",
        },
        "activationUrl": (activation or {}).get("activationUrl"),
        "message": (
            f"User '{login}' has been activated. Status changed from '{status}' to '{user.get('status')}'"
            + (". Activation email sent." if send_email else ".")
        ),
    }


@api_tool(
    "deactivate_user",
    "Deactivate a user in Okta, transitioning them to DEPROVISIONED status. Checks current status and "
    "provides detailed feedback. Optionally sends notification email.",
    {
        "type": "object",
        "properties": {
            "userId": USER_ID_SCHEMA,
            "sendEmail": {
                "type": "boolean",
                "description": "Whether to send a deactivation email notification to the user (default: false)",
                "default": False,
            },
        },
        "required": ["userId"],
    },
)
async def deactivate_user(args: Dict[str, Any]) -> Dict[str, Any]:
    user_id = require_value(args, "userId", USER_ID_HINT)
    send_email = bool(args.get("sendEmail", False))

    async with okta.connect() as client:
        current = await _fetch_user(client, user_id)
        status = current.get("status")
        if status == "DEPROVISIONED":
            return _unchanged(current, "deactivated", "DEPROVISIONED")
        if status not in DEACTIVATABLE:
            raise ToolInputError(
                f"Cannot deactivate user with status '{status}'. User must be in one of: {', '.join(DEACTIVATABLE)}"
            )

        suggestions = {
            403: "Insufficient permissions to deactivate users. Check your API token permissions.",
            400: "User cannot be deactivated in current state. Check user status and dependencies.",
        }
        user = await client.post(
            f"{_user_path(user_id)}/lifecycle/deactivate",
            params={"sendEmail": True if send_email else None},
            suggestions=suggestions,
        )
        # Okta answers deactivation with an empty body
        user = user or await _fetch_user(client, user_id)

    login = user["profile"].get("login")
    return {
        "id": user.get("id"),
        "status": user.get("status"),
        "previousStatus": status,
        "statusChanged": user.get("statusChanged"),
        "lastUpdated": user.get("lastUpdated"),
        "profile": _profile_view(user["profile"], "department", "title"),
        "_links": user.get("_links"),
        "deactivationSummary": {
            "emailSent": send_email,
            "previousStatus": status,
            "newStatus": user.get("status"),
            "canBeReactivated": True,
        },
        "message": (
            f"User '{login}' has been deactivated. Status changed from '{status}' to '{user.get('status')}'"
            + (". Deactivation email sent." if send_email else ".")
        ),
    }

