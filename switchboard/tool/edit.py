"""Edit file tool"""

from .base import Tool, resolve_path


class EditTool(Tool):
    name = "edit_file"
    description = "Make a precise edit to a file by replacing exact text. Preserves the rest of the file."

    def get_parameters_schema(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "Path to the file to edit",
                },
                "oldText": {
                    "type": "string",
                    "description": "Exact text to find (must match exactly including whitespace)",
                },
                "newText": {
                    "type": "string",
                    "description": "Replacement text",
                },
            },
            "required": ["path", "oldText", "newText"],
        }

    async def execute(self, args: dict, context: dict) -> str:
        path = resolve_path(args["path"], context)
        old_text = args["oldText"]
        new_text = args["newText"]

        if not path.exists():
            return f"Error: File not found: {path}"

        try:
            content = path.read_text()
            if old_text not in content:
                return (
                    f"Error: oldText not found in {path}. "
                    "Make sure it matches exactly (including whitespace)."
                )
            path.write_text(content.replace(old_text, new_text, 1))
            return f"Edited {path}: replaced {len(old_text)} chars with {len(new_text)} chars"
        except OSError as e:
            return f"Error editing file: {e}"
