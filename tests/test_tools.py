from unittest.mock import MagicMock

import pytest

from app.events import DateType, EventsClient, EventSearchParams
from app.tools import WEATHER_OPTIONS, ToolError, ToolName, WeatherParams, get_weather_information


def test_registry_declares_every_tool(tools):
    names = [d["function"]["name"] for d in tools.declarations()]
    assert sorted(names) == sorted(t.value for t in ToolName)
    for declaration in tools.declarations():
        assert declaration["type"] == "function"
        assert declaration["function"]["parameters"]["type"] == "object"


def test_client_side_tools_have_no_executor(tools):
    client_side = {t.name for t in tools if t.client_side}
    assert client_side == {ToolName.ASK_FOR_CONFIRMATION, ToolName.GET_LOCATION}


def test_lookup_by_name(tools):
    assert tools.lookup("getInformation").name is ToolName.GET_INFORMATION
    assert tools.lookup("launchRocket") is None
    assert "addResource" in tools
    assert "launchRocket" not in tools


def test_parse_call_validates_arguments(tools):
    tool, params, args = tools.parse_call("getInformation", '{"question": "capital of France?"}')
    assert tool.name is ToolName.GET_INFORMATION
    assert params.question == "capital of France?"
    assert args == {"question": "capital of France?"}


def test_parse_call_accepts_empty_arguments_for_parameterless_tool(tools):
    tool, _, args = tools.parse_call("getLocation", "")
    assert tool.name is ToolName.GET_LOCATION
    assert args == {}


@pytest.mark.parametrize(
    "name,arguments,message",
    [
        ("launchRocket", "{}", "unknown tool"),
        ("getInformation", "{not json", "invalid JSON"),
        ("getInformation", "[1, 2]", "must be an object"),
        ("getInformation", '{"query": "x"}', "invalid arguments"),
        ("searchEvents", '{"query": "jazz", "date": "someday"}', "invalid arguments"),
    ],
)
def test_parse_call_rejects_bad_calls(tools, name, arguments, message):
    with pytest.raises(ToolError, match=message):
        tools.parse_call(name, arguments)


def test_knowledge_tools_delegate_to_retrieval(tools, knowledge_store):
    add = tools.lookup("addResource")
    get = tools.lookup("getInformation")

    _, params, _ = tools.parse_call("addResource", '{"content": "Paris is the capital of France."}')
    assert add.execute(params) == "Resource successfully created and embedded."
    assert len(knowledge_store) == 1

    _, params, _ = tools.parse_call("getInformation", '{"question": "capital of France"}')
    results = get.execute(params)
    assert results[0]["content"] == "Paris is the capital of France"


def test_weather_is_one_of_known_options():
    for _ in range(20):
        assert get_weather_information(WeatherParams(city="Paris")) in WEATHER_OPTIONS


def test_search_events_trims_event_fields():
    session = MagicMock()
    session.get.return_value.json.return_value = {
        "status": "OK",
        "data": [
            {
                "event_id": "e1",
                "name": "Jazz Night",
                "description": "Live jazz",
                "date_human_readable": "Fri, Oct 24",
                "link": "https://example.com/e1",
                "venue": {"name": "Club"},
            }
        ],
    }
    client = EventsClient(url="https://events.test/search", api_key="k", host="events.test", timeout=3, session=session)

    result = client.search(EventSearchParams(query="jazz", date=DateType.TODAY))

    assert result["status"] == "OK"
    assert result["data"] == [
        {
            "name": "Jazz Night",
            "description": "Live jazz",
            "date_human_readable": "Fri, Oct 24",
            "link": "https://example.com/e1",
        }
    ]
    _, kwargs = session.get.call_args
    assert kwargs["params"] == {"query": "jazz", "date": "today"}
    assert kwargs["headers"]["x-rapidapi-key"] == "k"
    assert kwargs["timeout"] == 3
    session.get.return_value.raise_for_status.assert_called_once()


def test_search_events_requires_api_key():
    client = EventsClient(url="https://events.test/search", api_key="", session=MagicMock())
    client.api_key = ""
    with pytest.raises(RuntimeError, match="not configured"):
        client.search(EventSearchParams(query="jazz"))


def test_search_events_sends_lowercase_booleans():
    session = MagicMock()
    session.get.return_value.json.return_value = {"status": "OK", "data": []}
    client = EventsClient(url="https://events.test/search", api_key="k", host="events.test", session=session)

    client.search(EventSearchParams(query="webinar", start=10, is_virtual=True))

    _, kwargs = session.get.call_args
    assert kwargs["params"] == {"query": "webinar", "start": 10, "is_virtual": "true"}
