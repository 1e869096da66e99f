"""Write file tool"""

from .base import Tool, resolve_path


class WriteTool(Tool):
    name = "write_file"
    description = "Write content to a file. Creates the file if it doesn't exist, overwrites if it does."

    def get_parameters_schema(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "Absolute or relative path to the file",
                },
                "content": {
                    "type": "string",
                    "description": "Content to write",
                },
                "append": {
                    "type": "boolean",
                    "description": "Append instead of overwrite (default: false)",
                },
            },
            "required": ["path", "content"],
        }

    async def execute(self, args: dict, context: dict) -> str:
        path = resolve_path(args["path"], context)
        content = args["content"]

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            if args.get("append"):
                with path.open("a") as f:
                    f.write(content)
            else:
                path.write_text(content)
            return f"Written to {path} ({len(content)} chars)"
        except OSError as e:
            return f"Error writing file: {e}"
