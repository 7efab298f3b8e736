"""Tool registry for the chat assistant.

The set of tools is closed: ToolName enumerates every tool, and each Tool carries
its description, a pydantic model validating the model-supplied arguments, and an
optional executor. Tools without an executor are client-side: the call is sent to
the client, which supplies the result in a later request.

Dispatch is a dictionary lookup by ToolName.
"""
import json
import logging
import random
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Type

from pydantic import BaseModel, Field, ValidationError

from app.events import EventsClient, EventSearchParams
from app.retrieval import RetrievalService

logger = logging.getLogger(__name__)

WEATHER_OPTIONS = ["sunny", "cloudy", "rainy", "snowy", "windy"]


class ToolName(str, Enum):
    GET_WEATHER_INFORMATION = "getWeatherInformation"
    SEARCH_EVENTS = "searchEvents"
    ASK_FOR_CONFIRMATION = "askForConfirmation"
    GET_LOCATION = "getLocation"
    ADD_RESOURCE = "addResource"
    GET_INFORMATION = "getInformation"


class WeatherParams(BaseModel):
    city: str


class ConfirmationParams(BaseModel):
    message: str = Field(..., description="The message to ask for confirmation.")


class LocationParams(BaseModel):
    pass


class AddResourceParams(BaseModel):
    content: str = Field(..., description="the content or resource to add to the knowledge base")


class GetInformationParams(BaseModel):
    question: str = Field(..., description="the users question")


class ToolError(Exception):
    """Raised when a tool call cannot be resolved (unknown tool, bad arguments)."""


@dataclass(frozen=True)
class Tool:
    name: ToolName
    description: str
    parameters: Type[BaseModel]
    execute: Optional[Callable[[Any], Any]] = None

    @property
    def client_side(self) -> bool:
        return self.execute is None

    def declaration(self) -> Dict[str, Any]:
        """OpenAI function-tool declaration for this tool."""
        schema = self.parameters.model_json_schema()
        schema.pop("title", None)
        schema.setdefault("properties", {})
        return {
            "type": "function",
            "function": {
                "name": self.name.value,
                "description": self.description,
                "parameters": schema,
            },
        }


class ToolRegistry:
    def __init__(self, tools: List[Tool]):
        self._tools: Dict[ToolName, Tool] = {t.name: t for t in tools}

    def __contains__(self, name: str) -> bool:
        return self.lookup(name) is not None

    def __iter__(self):
        return iter(self._tools.values())

    def lookup(self, name: str) -> Optional[Tool]:
        try:
            return self._tools.get(ToolName(name))
        except ValueError:
            return None

    def declarations(self) -> List[Dict[str, Any]]:
        return [t.declaration() for t in self._tools.values()]

    def parse_call(self, name: str, arguments: str) -> tuple:
        """Resolve a tool and validate raw JSON arguments against its schema.

        Returns:
            tuple: ``(tool, params, args_dict)``.

        Raises:
            ToolError: Unknown tool, undecodable JSON, or schema violation.
        """
        tool = self.lookup(name)
        if tool is None:
            raise ToolError(f"unknown tool: {name}")
        try:
            args = json.loads(arguments) if arguments else {}
        except json.JSONDecodeError as e:
            raise ToolError(f"invalid JSON arguments for {name}: {e}") from e
        if not isinstance(args, dict):
            raise ToolError(f"arguments for {name} must be an object")
        try:
            params = tool.parameters.model_validate(args)
        except ValidationError as e:
            raise ToolError(f"invalid arguments for {name}: {e}") from e
        return tool, params, args


def get_weather_information(params: WeatherParams) -> str:
    return random.choice(WEATHER_OPTIONS)


def build_tool_registry(retrieval: RetrievalService, events: EventsClient) -> ToolRegistry:
    """Build the assistant's tool set around the given collaborators."""
    return ToolRegistry(
        [
            Tool(
                name=ToolName.GET_WEATHER_INFORMATION,
                description="show the weather in a given city to the user",
                parameters=WeatherParams,
                execute=get_weather_information,
            ),
            Tool(
                name=ToolName.SEARCH_EVENTS,
                description="call the getEvents API and return results to the user",
                parameters=EventSearchParams,
                execute=events.search,
            ),
            Tool(
                name=ToolName.ASK_FOR_CONFIRMATION,
                description="Ask the user for confirmation.",
                parameters=ConfirmationParams,
            ),
            Tool(
                name=ToolName.GET_LOCATION,
                description="Get the user location. Always ask for confirmation before using this tool.",
                parameters=LocationParams,
            ),
            Tool(
                name=ToolName.ADD_RESOURCE,
                description=(
                    "add a resource to your knowledge base.\n"
                    "If the user provides a random piece of knowledge unprompted, "
                    "use this tool without asking for confirmation."
                ),
                parameters=AddResourceParams,
                execute=lambda p: retrieval.add_resource(p.content),
            ),
            Tool(
                name=ToolName.GET_INFORMATION,
                description="get information from your knowledge base to answer questions.",
                parameters=GetInformationParams,
                execute=lambda p: retrieval.get_information(p.question),
            ),
        ]
    )
