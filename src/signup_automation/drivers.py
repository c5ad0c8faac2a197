"""
Agent drivers: whoever decides which tool to call next.

The driver is outside the automation core; it only sees the Toolbox. Two
adapters ship with the service:

  ScriptedDriver:   a fixed, ordered plan (deterministic, no LLM)
  OpenAIToolDriver: an OpenAI-compatible chat model using function calling

Both stop by returning a final summary string. Errors they let escape are
turned into the failure response by the run boundary.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Optional, Protocol

from openai import AsyncOpenAI

from . import config
from .credentials import CredentialSet
from .errors import AutomationError, BudgetExceededError
from .tools import Toolbox

logger = logging.getLogger(__name__)


class AgentDriver(Protocol):
    async def run(self, tools: Toolbox) -> str:
        """Issue tool calls one at a time; return the final summary."""
        ...


class FormNotDetectedError(AutomationError):
    """Driver policy: the signup form never rendered, so the flow is abandoned."""

    def __init__(self, url: str):
        self.url = url
        super().__init__(f"Signup form not detected at {url}")


# ── Scripted driver ───────────────────────────────────────────────────────

@dataclass
class PlannedCall:
    name: str
    arguments: dict = field(default_factory=dict)


def signup_plan(credentials: CredentialSet, url: str = config.SIGNUP_URL) -> list[PlannedCall]:
    """The ten-step signup flow: load, fill five fields, submit, with screenshots."""
    return [
        PlannedCall("open_url", {"url": url}),
        PlannedCall("take_screenshot", {"step": "signup_form_loaded"}),
        PlannedCall("type_text", {"selector": "#firstName", "text": credentials.first_name}),
        PlannedCall("type_text", {"selector": "#lastName", "text": credentials.last_name}),
        PlannedCall("type_text", {"selector": "#email", "text": credentials.email}),
        PlannedCall("type_text", {"selector": "#password", "text": credentials.password}),
        PlannedCall("type_text", {"selector": "#confirmPassword", "text": credentials.confirm_password}),
        PlannedCall("take_screenshot", {"step": "form_filled"}),
        PlannedCall("click", {"selector": "button[type='submit']"}),
        PlannedCall("take_screenshot", {"step": "submitted"}),
    ]


class ScriptedDriver:
    """Replays a fixed plan.

    on_failure:      "abort" re-raises the first tool failure, "continue" notes it and moves on.
    on_form_missing: what to do when open_url reports formDetected=false;
                     "proceed" keeps going, "abort" raises FormNotDetectedError.
    """

    def __init__(
        self,
        plan: list[PlannedCall],
        on_failure: str = "abort",
        on_form_missing: str = "proceed",
    ):
        if on_failure not in ("abort", "continue"):
            raise ValueError(f"on_failure must be 'abort' or 'continue', got {on_failure!r}")
        if on_form_missing not in ("proceed", "abort"):
            raise ValueError(f"on_form_missing must be 'proceed' or 'abort', got {on_form_missing!r}")
        self.plan = list(plan)
        self.on_failure = on_failure
        self.on_form_missing = on_form_missing

    async def run(self, tools: Toolbox) -> str:
        failures = []
        references = []
        form_missing = False

        for step in self.plan:
            result = await tools.call(step.name, step.arguments)

            if not result.ok:
                if self.on_failure == "abort":
                    result.unwrap()
                failures.append(result.to_text())
                continue

            if step.name == "open_url" and not result.output.get("formDetected", True):
                form_missing = True
                if self.on_form_missing == "abort":
                    raise FormNotDetectedError(result.output.get("finalUrl") or step.arguments.get("url", ""))
                tools.context.run_log.append(
                    "Form not detected; proceeding with the plan anyway", logging.WARNING
                )

            if step.name == "take_screenshot" and isinstance(result.output, dict):
                references.append(result.output["reference"])

        lines = [f"Ran {len(self.plan)} planned steps, {len(failures)} failed."]
        if form_missing:
            lines.append("The signup form was not detected after navigation.")
        if references:
            lines.append("Screenshots:")
            lines.extend(f"- {ref}" for ref in references if not ref.startswith("data:"))
            inline = sum(1 for ref in references if ref.startswith("data:"))
            if inline:
                lines.append(f"- {inline} inline screenshot(s)")
        lines.extend(f"Failure: {text}" for text in failures)
        return "\n".join(lines)


# ── LLM driver ────────────────────────────────────────────────────────────

SYSTEM_PROMPT = """You are automating signup at {url}.

Rules:
- After each meaningful action, call take_screenshot with a descriptive step.
- Use reliable CSS selectors from the form (#firstName, #lastName, #email, #password, #confirmPassword).
- If open_url reports formDetected=false, the page may be showing a bot challenge:
  call wait_for on #firstName once; if it still fails, stop and report the problem.
- If a selector fails, try an alternative (input[name='firstName'], input[type='email'], ...).
- click also accepts role+name (for example role="button", name="Sign up") with an optional nth index.
- ALWAYS call tools. Never describe an action instead of doing it.

Data to use:
- First name: {first_name}
- Last name: {last_name}
- Email: {email}
- Password: {password}
- Confirm password: {confirm_password}

Steps:
1) open_url("{url}")
2) take_screenshot("signup_form_loaded")
3) type_text each field with the data above
4) take_screenshot("form_filled")
5) click(selector="button[type='submit']")
6) take_screenshot("submitted")

When finished, reply with a short summary listing every screenshot reference you produced."""


def build_instructions(credentials: CredentialSet, url: str = config.SIGNUP_URL) -> str:
    return SYSTEM_PROMPT.format(
        url=url,
        first_name=credentials.first_name,
        last_name=credentials.last_name,
        email=credentials.email,
        password=credentials.password,
        confirm_password=credentials.confirm_password,
    )


class OpenAIToolDriver:
    """OpenAI-compatible LLM that sequences the tools through function calling."""

    def __init__(
        self,
        credentials: CredentialSet,
        signup_url: str = config.SIGNUP_URL,
        client: Optional[AsyncOpenAI] = None,
        model: str = config.AGENT_LLM_MODEL,
        base_url: str = config.AGENT_LLM_BASE_URL,
        api_key: str = config.AGENT_LLM_API_KEY,
        max_iterations: int = config.MAX_TURNS,
    ):
        self.credentials = credentials
        self.signup_url = signup_url
        self.model = model
        self.max_iterations = max_iterations
        self.client = client or AsyncOpenAI(base_url=base_url, api_key=api_key)

    async def run(self, tools: Toolbox) -> str:
        messages = [
            {"role": "system", "content": build_instructions(self.credentials, self.signup_url)},
            {"role": "user", "content": "Automate signup and capture screenshots."},
        ]
        definitions = tools.definitions()

        for iteration in range(self.max_iterations):
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                tools=definitions,
                tool_choice="auto",
            )
            message = response.choices[0].message

            if not message.tool_calls:
                final_response = message.content or "Task completed."
                logger.info(f"Driver finished at iteration {iteration + 1}: {final_response[:100]!r}")
                return final_response

            messages.append({
                "role": "assistant",
                "content": message.content,
                "tool_calls": [
                    {
                        "id": tc.id,
                        "type": "function",
                        "function": {"name": tc.function.name, "arguments": tc.function.arguments},
                    }
                    for tc in message.tool_calls
                ],
            })

            for tool_call in message.tool_calls:
                function_name = tool_call.function.name
                try:
                    function_args = json.loads(tool_call.function.arguments or "{}")
                except json.JSONDecodeError:
                    logger.warning(f"Unparseable arguments for {function_name}: {tool_call.function.arguments!r}")
                    function_args = {}
                if not isinstance(function_args, dict):
                    function_args = {}

                logger.info(f"TOOL CALL: {function_name} {function_args}")
                result = await tools.call(function_name, function_args)

                messages.append({
                    "role": "tool",
                    "tool_call_id": tool_call.id,
                    "content": _model_text(result),
                })

        raise BudgetExceededError(f"driver made {self.max_iterations} model calls without finishing")


def _model_text(result) -> str:
    """Tool result as the model sees it; inline image payloads are replaced by their filename."""
    output = result.output
    if result.ok and isinstance(output, dict) and str(output.get("reference", "")).startswith("data:"):
        output = {**output, "reference": f"inline:{output.get('filename', output.get('step'))}"}
        return json.dumps(output)
    return result.to_text()


# ── Factory ───────────────────────────────────────────────────────────────

DRIVER_MODES = ("scripted", "openai")


def driver_factory(mode: str = config.DRIVER_MODE, signup_url: str = config.SIGNUP_URL):
    """Return a callable that builds the configured driver for one CredentialSet."""
    if mode == "scripted":
        return lambda credentials: ScriptedDriver(signup_plan(credentials, signup_url))
    if mode == "openai":
        return lambda credentials: OpenAIToolDriver(credentials, signup_url=signup_url)
    raise ValueError(f"Unknown DRIVER_MODE '{mode}' (expected one of {', '.join(DRIVER_MODES)})")
