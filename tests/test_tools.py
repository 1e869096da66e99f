"""Tests for tool implementations"""

import json
import sys

import httpx
import pytest


@pytest.fixture
def context(tmp_path):
    """Create a test context"""
    return {"cwd": tmp_path}


class TestReadTool:
    @pytest.mark.asyncio
    async def test_read_file(self, tmp_path, context):
        from switchboard.tool.read import ReadTool

        (tmp_path / "test.txt").write_text("line 1\nline 2\nline 3\n")

        result = await ReadTool().execute({"path": "test.txt"}, context)

        assert result == "line 1\nline 2\nline 3\n"

    @pytest.mark.asyncio
    async def test_max_lines(self, tmp_path, context):
        from switchboard.tool.read import ReadTool

        (tmp_path / "test.txt").write_text("a\nb\nc\nd")

        result = await ReadTool().execute({"path": "test.txt", "maxLines": 2}, context)

        assert result.startswith("a\nb\n")
        assert "(4 lines total)" in result
        assert "c" not in result

    @pytest.mark.asyncio
    async def test_missing_file(self, context):
        from switchboard.tool.read import ReadTool

        result = await ReadTool().execute({"path": "nope.txt"}, context)

        assert result.startswith("Error: File not found")


class TestWriteTool:
    @pytest.mark.asyncio
    async def test_write_creates_parents(self, tmp_path, context):
        from switchboard.tool.write import WriteTool

        result = await WriteTool().execute({"path": "sub/dir/out.txt", "content": "hello"}, context)

        assert (tmp_path / "sub" / "dir" / "out.txt").read_text() == "hello"
        assert "(5 chars)" in result

    @pytest.mark.asyncio
    async def test_append(self, tmp_path, context):
        from switchboard.tool.write import WriteTool

        target = tmp_path / "log.txt"
        target.write_text("one\n")

        await WriteTool().execute({"path": str(target), "content": "two\n", "append": True}, context)

        assert target.read_text() == "one\ntwo\n"


class TestEditTool:
    @pytest.mark.asyncio
    async def test_replaces_first_occurrence(self, tmp_path, context):
        from switchboard.tool.edit import EditTool

        target = tmp_path / "code.py"
        target.write_text("x = 1\nx = 1\n")

        result = await EditTool().execute(
            {"path": "code.py", "oldText": "x = 1", "newText": "x = 2"}, context
        )

        assert result.startswith("Edited")
        assert target.read_text() == "x = 2\nx = 1\n"

    @pytest.mark.asyncio
    async def test_old_text_not_found(self, tmp_path, context):
        from switchboard.tool.edit import EditTool

        (tmp_path / "code.py").write_text("print('hi')\n")

        result = await EditTool().execute(
            {"path": "code.py", "oldText": "missing", "newText": "x"}, context
        )

        assert "oldText not found" in result


class TestListTool:
    @pytest.mark.asyncio
    async def test_directories_first(self, tmp_path, context):
        from switchboard.tool.ls import ListTool

        (tmp_path / "b.txt").write_text("12345")
        (tmp_path / "a_dir").mkdir()
        (tmp_path / "a_dir" / "inner.txt").write_text("x")

        result = await ListTool().execute({}, context)
        lines = result.splitlines()

        assert lines[1] == "a_dir/"
        assert lines[2] == "b.txt (5B)"
        assert "inner.txt" not in result

    @pytest.mark.asyncio
    async def test_recursive(self, tmp_path, context):
        from switchboard.tool.ls import ListTool

        (tmp_path / "pkg").mkdir()
        (tmp_path / "pkg" / "mod.py").write_text("")

        result = await ListTool().execute({"recursive": True}, context)

        assert "  mod.py (0B)" in result

    @pytest.mark.asyncio
    async def test_not_a_directory(self, tmp_path, context):
        from switchboard.tool.ls import ListTool

        (tmp_path / "file.txt").write_text("")

        result = await ListTool().execute({"path": "file.txt"}, context)

        assert result.startswith("Error: Not a directory")


@pytest.mark.skipif(sys.platform == "win32", reason="needs a POSIX shell")
class TestBashTool:
    @pytest.mark.asyncio
    async def test_runs_in_working_dir(self, tmp_path, context):
        from switchboard.tool.bash import BashTool

        (tmp_path / "marker").write_text("")

        result = await BashTool().execute({"command": "ls"}, context)

        assert "marker" in result

    @pytest.mark.asyncio
    async def test_nonzero_exit(self, context):
        from switchboard.tool.bash import BashTool

        result = await BashTool().execute({"command": "echo oops >&2; exit 3"}, context)

        assert result.startswith("Exit code 3")
        assert "oops" in result

    @pytest.mark.asyncio
    async def test_blocked_command(self, context):
        from switchboard.tool.bash import BashTool

        result = await BashTool().execute({"command": "sudo rm -rf / --no-preserve-root"}, context)

        assert result == "Error: Command blocked for safety."

    @pytest.mark.asyncio
    async def test_timeout(self, context):
        from switchboard.tool.bash import BashTool

        result = await BashTool().execute({"command": "sleep 5"}, {**context, "shell_timeout": 0.2})

        assert "timed out" in result


class TestPythonTool:
    @pytest.mark.asyncio
    async def test_prints_output(self, context):
        from switchboard.tool.python import PythonTool

        result = await PythonTool().execute({"code": "print(6 * 7)"}, context)

        assert result.strip() == "42"

    @pytest.mark.asyncio
    async def test_reports_exception(self, context):
        from switchboard.tool.python import PythonTool

        result = await PythonTool().execute({"code": "raise ValueError('bad')"}, context)

        assert result.startswith("Python error (exit 1)")
        assert "ValueError: bad" in result


class TestWebTools:
    def test_html_to_text(self):
        from switchboard.tool.web import html_to_text

        html = "<html><script>var x;</script><style>p{}</style><p>Hello</p>\n<b>world</b></html>"

        assert html_to_text(html) == "Hello world"

    @pytest.mark.asyncio
    async def test_fetch_html(self, context):
        from switchboard.tool.web import WebFetchTool

        def handler(request):
            return httpx.Response(200, text="<h1>Title</h1><p>Body</p>", headers={"content-type": "text/html"})

        ctx = {**context, "http_transport": httpx.MockTransport(handler)}
        result = await WebFetchTool().execute({"url": "https://example.com"}, ctx)

        assert result == "Title Body"

    @pytest.mark.asyncio
    async def test_fetch_http_error(self, context):
        from switchboard.tool.web import WebFetchTool

        ctx = {**context, "http_transport": httpx.MockTransport(lambda r: httpx.Response(404, text="gone"))}
        result = await WebFetchTool().execute({"url": "https://example.com/x"}, ctx)

        assert result.startswith("Error: HTTP 404")

    @pytest.mark.asyncio
    async def test_search(self, context):
        from switchboard.tool.web import WebSearchTool

        payload = {
            "AbstractText": "Python is a language.",
            "AbstractURL": "https://python.org",
            "RelatedTopics": [{"Text": "CPython", "FirstURL": "https://example.com/cpython"}, {}],
        }
        seen = {}

        def handler(request):
            seen["q"] = request.url.params["q"]
            return httpx.Response(200, json=payload)

        ctx = {**context, "http_transport": httpx.MockTransport(handler)}
        result = await WebSearchTool().execute({"query": "python"}, ctx)

        assert seen["q"] == "python"
        assert "Python is a language." in result
        assert "- CPython" in result

    @pytest.mark.asyncio
    async def test_search_no_results(self, context):
        from switchboard.tool.web import WebSearchTool

        ctx = {**context, "http_transport": httpx.MockTransport(lambda r: httpx.Response(200, json={}))}
        result = await WebSearchTool().execute({"query": "zzz"}, ctx)

        assert result.startswith('No results for "zzz"')


class TestToolRegistry:
    def test_default_tools(self):
        from switchboard.tool.registry import ToolRegistry

        names = set(ToolRegistry().names())

        assert names == {
            "run_shell", "read_file", "write_file", "edit_file",
            "list_directory", "web_fetch", "web_search", "python_execute",
        }

    def test_schemas_use_function_format(self):
        from switchboard.tool.registry import ToolRegistry

        schemas = ToolRegistry().get_schemas()

        for schema in schemas:
            assert schema["type"] == "function"
            assert set(schema["function"]) == {"name", "description", "parameters"}
        json.dumps(schemas)

    def test_satisfies_executor_protocol(self):
        from switchboard.tool.base import ToolExecutor
        from switchboard.tool.registry import ToolRegistry

        assert isinstance(ToolRegistry(), ToolExecutor)

    @pytest.mark.asyncio
    async def test_unknown_tool(self):
        from switchboard.tool.registry import ToolRegistry

        result = await ToolRegistry().execute("teleport", {})

        assert result == "Error: Unknown tool 'teleport'"

    @pytest.mark.asyncio
    async def test_missing_argument_is_text(self, tmp_path):
        from switchboard.tool.registry import ToolRegistry

        result = await ToolRegistry().execute("read_file", {}, tmp_path)

        assert result.startswith("Error executing read_file: missing argument")

    @pytest.mark.asyncio
    async def test_working_dir_is_passed(self, tmp_path):
        from switchboard.tool.registry import ToolRegistry

        (tmp_path / "note.txt").write_text("content")

        result = await ToolRegistry().execute("read_file", {"path": "note.txt"}, tmp_path)

        assert result == "content"

    @pytest.mark.asyncio
    async def test_tool_exception_is_text(self):
        from switchboard.tool.base import Tool
        from switchboard.tool.registry import ToolRegistry

        class Exploding(Tool):
            name = "explode"
            description = "always fails"

            def get_parameters_schema(self):
                return {"type": "object", "properties": {}}

            async def execute(self, args, context):
                raise RuntimeError("boom")

        registry = ToolRegistry(defaults=False)
        registry.register(Exploding())

        assert await registry.execute("explode", {}) == "Error executing explode: boom"
