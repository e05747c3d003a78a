"""Current time tool: reports the current UTC time."""

from datetime import datetime, timezone

from tools.base_tool import Tool


class CurrentTimeTool(Tool):
    name = "current_time"
    description = "Return the current UTC time, ISO-8601 by default or formatted with a strftime pattern."
    parameters = {
        "type": "object",
        "properties": {
            "format": {"type": "string", "description": "Optional strftime pattern"},
        },
    }

    def execute(self, args):
        now = datetime.now(timezone.utc)
        fmt = args.get("format") if isinstance(args, dict) else None
        if fmt:
            return now.strftime(str(fmt))
        return now.isoformat()
