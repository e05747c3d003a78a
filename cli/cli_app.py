"""Interactive CLI for the tool-calling agent."""

from agent.agent import Agent
from agent.config import AgentConfig
from agent.exceptions import AgentError
from agent.messages import AssistantMessage, ToolCallMessage, ToolResultMessage, UserMessage


# ANSI color codes
RESET = "\033[0m"
BOLD = "\033[1m"
DIM = "\033[2m"
CYAN = "\033[36m"
GREEN = "\033[32m"
YELLOW = "\033[33m"
RED = "\033[31m"

PREVIEW_CHARS = 300


class CLIApp:
    """Interactive REPL over a single Agent."""

    def __init__(self, config: AgentConfig, input_func=input, output_func=print):
        self.config = config
        self.agent: Agent | None = None
        self._input = input_func
        self._print = output_func

    async def run(self):
        """Main REPL loop."""
        self._print_banner()

        try:
            self._new_session()
        except AgentError as e:
            self._print(f"{RED}[Error] {e}{RESET}")
            return

        try:
            await self._repl()
        finally:
            self.agent.close()

    async def _repl(self):
        while True:
            try:
                user_input = self._input(f"{BOLD}You:{RESET} ").strip()
            except (EOFError, KeyboardInterrupt):
                self._print(f"\n{DIM}Goodbye!{RESET}")
                break

            if not user_input:
                continue

            # Commands
            command = user_input.lower()
            if command in ("exit", "quit", "/exit", "/quit"):
                self._print(f"{DIM}Goodbye!{RESET}")
                break
            if command in ("reset", "/reset", "/new"):
                self.agent.reset()
                self._print(f"{DIM}[Session reset]{RESET}")
                continue
            if command in ("tools", "/tools"):
                self._print_tools()
                continue
            if command in ("help", "/help"):
                self._print_help()
                continue

            await self.handle_message(user_input)

    async def handle_message(self, text: str) -> bool:
        """Run the loop for one user message and print what it produced."""
        try:
            produced = await self.agent.run(UserMessage(text))
        except AgentError as e:
            self._print(f"\n{RED}[{type(e).__name__}] {e}{RESET}\n")
            return False

        for message in produced:
            if isinstance(message, ToolCallMessage):
                self._print(f"{CYAN}{DIM}[tool] {message.tool_name}({message.args_text}){RESET}")
            elif isinstance(message, ToolResultMessage):
                color = RED if message.is_error else DIM
                self._print(f"{color}  -> {message.content[:PREVIEW_CHARS]}{RESET}")
            elif isinstance(message, AssistantMessage):
                self._print(f"\n{BOLD}{GREEN}Agent:{RESET} {message.content}\n")
        return True

    def _new_session(self):
        """Create the agent with extensions and builtin tools."""
        self.agent = Agent.from_config(self.config)

    def _print_banner(self):
        provider = self.config.provider
        self._print(f"""
{BOLD}{CYAN}╔══════════════════════════════════════╗
║       Tool Loop Agents v0.1.0        ║
╚══════════════════════════════════════╝{RESET}
{DIM}Adapter: {provider.adapter}
Model: {provider.model or 'provider default'}
Endpoint: {provider.base_url or 'provider default'}{RESET}
""")

    def _print_tools(self):
        if not self.agent.tools:
            self._print(f"{YELLOW}[No tools registered]{RESET}")
            return
        self._print(f"{DIM}Registered tools:{RESET}")
        for t in self.agent.tools:
            self._print(f"{DIM}- {t.name}: {t.description}{RESET}")

    def _print_help(self):
        self._print(f"""
{BOLD}Commands:{RESET}
  {CYAN}/tools{RESET}   List registered tools
  {CYAN}/reset{RESET}   Clear the conversation
  {CYAN}/help{RESET}    Show this help
  {CYAN}/exit{RESET}    Quit

{BOLD}How it works:{RESET}
  Your message is sent to the model together with the tool list.
  Tool calls the model makes are executed and their results sent
  back until the model answers in plain text.
""")
