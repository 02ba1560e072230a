"""Tests for registry loading, name filtering and the listing transform."""

import pytest

from okta_mcp.config import Config
from okta_mcp.discovery import (
    ToolLoadError,
    coerce_tool,
    discover_tools,
    filter_tools,
    load_tool,
    registry_paths,
    transform_tools,
)
from okta_mcp.tools import TOOL_PATHS, ApiTool


async def _noop(args):
    return args


class TestRegistry:
    def test_default_registry_has_28_unique_tools(self):
        tools = discover_tools()
        names = [t.name for t in tools]
        assert len(names) == 28
        assert len(set(names)) == 28

    def test_registry_order_is_kept(self):
        names = [t.name for t in discover_tools()]
        assert names[:3] == ["list_users", "create_user", "get_user"]
        assert names[-1] == "remove_policy_mapping"

    def test_configured_paths_override_default(self, monkeypatch):
        monkeypatch.setattr(Config, "TOOL_PATHS", ["okta_mcp.tools.groups:get_group"])
        assert registry_paths() == ["okta_mcp.tools.groups:get_group"]
        assert [t.name for t in discover_tools()] == ["get_group"]

    def test_empty_config_falls_back(self):
        assert registry_paths() == TOOL_PATHS


class TestBestEffortLoading:
    def test_bad_entries_are_skipped(self):
        tools = discover_tools([
            "okta_mcp.tools.groups:get_group",
            "okta_mcp.no_such_module:tool",
            "okta_mcp.tools.groups:missing_attr",
            "okta_mcp.config:Config",
            "not-a-registry-entry",
            "okta_mcp.tools.users:get_user",
        ])
        assert [t.name for t in tools] == ["get_group", "get_user"]

    def test_duplicate_names_keep_first(self):
        tools = discover_tools([
            "okta_mcp.tools.users:get_user",
            "okta_mcp.tools.users:get_user",
        ])
        assert len(tools) == 1

    def test_load_tool_errors(self):
        with pytest.raises(ToolLoadError):
            load_tool("okta_mcp.tools.users")
        with pytest.raises(ToolLoadError):
            load_tool("okta_mcp.tools.users:nope")


class TestCoerceTool:
    def test_dict_definition(self):
        tool = coerce_tool({
            "definition": {
                "name": "dict_tool",
                "description": "From a mapping",
                "parameters": {"type": "object", "properties": {}, "required": ["x"]},
            },
            "function": _noop,
        })
        assert isinstance(tool, ApiTool)
        assert tool.name == "dict_tool"
        assert tool.required == ["x"]

    def test_definition_nested_under_function(self):
        tool = coerce_tool({
            "definition": {
                "type": "function",
                "function": {
                    "name": "nested",
                    "description": "Nested definition",
                    "parameters": {"type": "object", "properties": {}},
                },
            },
            "function": _noop,
        })
        assert tool.name == "nested"
        assert tool.required == []

    @pytest.mark.parametrize("obj", [
        {"definition": {"description": "no name", "parameters": {"type": "object"}}, "function": _noop},
        {"definition": {"name": "x", "parameters": {"type": "array"}}, "function": _noop},
        {"definition": {"name": "x", "parameters": {"type": "object"}}, "function": "not callable"},
        42,
    ])
    def test_invalid_shapes(self, obj):
        with pytest.raises(ToolLoadError):
            coerce_tool(obj)


class TestFilterAndTransform:
    def test_filter_globs(self):
        tools = discover_tools()
        assert {t.name for t in filter_tools(tools, "list_*")} >= {"list_users", "list_groups", "list_policies"}
        picked = filter_tools(tools, "get_user, get_group")
        assert [t.name for t in picked] == ["get_user", "get_group"]
        assert filter_tools(tools, "") == tools
        assert filter_tools(tools, "nothing_matches") == []

    def test_transform_shape(self, fake_tools):
        listed = transform_tools(fake_tools)
        assert [e["name"] for e in listed] == [t.name for t in fake_tools]
        for entry, tool in zip(listed, fake_tools):
            assert set(entry) == {"name", "description", "inputSchema"}
            assert entry["description"] == tool.description
            assert entry["inputSchema"] == tool.parameters

    def test_transform_drops_entries_without_definition(self, fake_tools):
        listed = transform_tools([fake_tools[0], {"function": _noop}, None])
        assert [e["name"] for e in listed] == ["echo"]

    def test_transform_is_idempotent(self, fake_tools):
        assert transform_tools(fake_tools) == transform_tools(fake_tools)

    def test_policy_listing_schema_has_no_required(self):
        (tool,) = discover_tools(["okta_mcp.tools.policies:list_policies"])
        (entry,) = transform_tools([tool])
        assert "required" not in entry["inputSchema"]
