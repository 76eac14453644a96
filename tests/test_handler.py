from types import SimpleNamespace

import pytest

from taskgraph import (
    EscapedResponse,
    Handler,
    InternalError,
    TaskError,
    Value,
    auto,
    auto_inject,
)


class Response:
    def __init__(self, source=None):
        self.source = source
        self.headers = {}
        self.location = None

    def header(self, name, value):
        self.headers[name] = value
        return self

    def redirect(self, location):
        self.location = location
        return self


class Toolkit:
    def response(self, value=None):
        return Response(value)

    def redirect(self, location):
        return Response().redirect(location)


@pytest.fixture
def server():
    return SimpleNamespace(info=SimpleNamespace(host="localhost", port=3000))


def _first_second_third(calls):
    def first(done):
        calls.append("first")
        done()

    def second(done):
        calls.append("second")
        done()

    def third(results, done):
        calls.append("third")
        done(None, "the_third_result")

    return {"first": first, "second": second, "third": ["first", "second", third]}


@pytest.mark.anyio
async def test_basic_auto_handler():
    calls = []

    def reply(results, done):
        done(None, {"third": results.third})

    handler = auto(
        {
            **_first_second_third(calls),
            "reply": ["first", "second", "third", reply],
        }
    )
    outcome = await handler(object(), Toolkit())

    assert isinstance(handler, Handler)
    assert sorted(calls) == ["first", "second", "third"]
    assert outcome.value["third"] == "the_third_result"


@pytest.mark.anyio
async def test_returns_reply_result():
    def reply(results, done):
        done(None, results.third)

    handler = auto({**_first_second_third([]), "reply": ["third", reply]})

    assert await handler() == Value("the_third_result")


@pytest.mark.anyio
async def test_returns_aggregated_results_without_reply():
    handler = auto(_first_second_third([]))

    assert await handler(object(), Toolkit()) == Value({"third": "the_third_result"})


@pytest.mark.anyio
async def test_redirect():
    handler = auto(
        {
            **_first_second_third([]),
            "redirect": ["third", lambda results: "/go-to-here"],
            "reply": ["third", lambda results: results.third],
        }
    )
    outcome = await handler()

    assert outcome.value == "the_third_result"
    assert outcome.redirect == "/go-to-here"


@pytest.mark.anyio
async def test_set_state():
    def set_state(results, done):
        done(None, {"name": "newstate", "data": "890jdksfgu893rgjhksdfkjhdsfgdsf"})

    handler = auto(
        {
            **_first_second_third([]),
            "setState": ["third", set_state],
            "reply": ["third", lambda results: results.third],
        }
    )
    outcome = await handler()

    assert outcome.state.name == "newstate"
    assert outcome.state.data == "890jdksfgu893rgjhksdfkjhdsfgdsf"


@pytest.mark.anyio
async def test_server_and_request_are_available(server):
    request = SimpleNamespace(server=server)

    def reply(results, done):
        done(
            None,
            {"first": results.first, "second": results.second, "third": results.third},
        )

    handler = auto(
        {
            "first": ["server", lambda results: results.server.info],
            "second": ["request", lambda results: results.request.server.info],
            "third": ["first", "second", lambda results: "the_third_result"],
            "reply": ["first", "second", "third", reply],
        },
        server=server,
    )
    outcome = await handler(request, Toolkit())

    assert outcome.value["first"].host == "localhost"
    assert outcome.value["second"].host == "localhost"


@pytest.mark.anyio
async def test_settings_are_available():
    handler = auto(
        {"reply": ["settings", lambda results: results.settings]},
        settings={"key": "value"},
    )
    outcome = await handler()

    assert outcome.value["key"] == "value"


@pytest.mark.anyio
async def test_settings_are_returned_without_reply():
    handler = auto({"first": lambda: 1}, settings={"key": "value"})

    assert await handler() == Value({"settings": {"key": "value"}, "first": 1})


@pytest.mark.anyio
async def test_settings_can_be_overridden_per_call():
    handler = auto(
        {"reply": ["settings", lambda results: results.settings]},
        settings={"key": "value"},
    )
    outcome = await handler(settings={"key": "other"})

    assert outcome.value == {"key": "other"}


@pytest.mark.anyio
async def test_returns_errors():
    def first(done):
        done(ValueError("error"))

    handler = auto({"first": first, "second": ["first", lambda results: "fail"]})

    with pytest.raises(InternalError) as exc_info:
        await handler()

    assert exc_info.value.status_code == 500


@pytest.mark.anyio
async def test_returns_structured_errors():
    def first(done):
        done(TaskError.not_found())

    handler = auto({"first": first, "second": ["first", lambda results: "fail"]})

    with pytest.raises(TaskError) as exc_info:
        await handler()

    assert exc_info.value.status_code == 404


@pytest.mark.anyio
async def test_returns_string_errors_as_task_errors():
    def first(done):
        done("you have made a grave mistake")

    handler = auto({"first": first, "second": ["first", lambda results: "fail"]})

    with pytest.raises(TaskError) as exc_info:
        await handler()

    assert not isinstance(exc_info.value, InternalError)
    assert exc_info.value.status_code == 500
    assert str(exc_info.value) == "you have made a grave mistake"


@pytest.mark.anyio
async def test_auto_inject():
    def first(done):
        done(None, 1)

    def third(first, done):
        assert first == 1
        done(None, 2)

    def reply(first, third, done):
        assert first + third == 3
        done()

    outcome = await auto_inject({"first": first, "third": third, "reply": reply})()

    assert outcome == Value(None)


@pytest.mark.anyio
async def test_server_is_read_at_call_time(server):
    def first(server, done):
        done(None, server.test())

    def reply(first, done):
        assert first is True
        done(None, "ok")

    handler = auto_inject({"first": first, "reply": reply}, server=server)
    server.test = lambda: True

    assert await handler() == Value("ok")


@pytest.mark.anyio
async def test_set_headers():
    def set_headers(first, done):
        done(None, {"content-type": "application/mp3"})

    def reply(first, third, setHeaders, done):
        done()

    handler = auto_inject(
        {
            "first": lambda: 1,
            "third": lambda first: first + 1,
            "setHeaders": set_headers,
            "reply": reply,
        }
    )
    outcome = await handler()

    assert outcome.headers == {"content-type": "application/mp3"}


@pytest.mark.anyio
async def test_reply_task_can_return_a_response():
    def reply(h, done):
        done(None, h.redirect("/redirect"))

    outcome = await auto_inject({"reply": reply})(object(), Toolkit())

    assert isinstance(outcome, Value)
    assert outcome.value.location == "/redirect"


@pytest.mark.anyio
async def test_response_objects_are_not_cached():
    count = 0

    def reply(h, done):
        nonlocal count
        res = h.response("ok")
        res.header("x-test", count)
        count += 1
        done(None, res)

    handler = auto_inject({"reply": reply})

    first = await handler(object(), Toolkit())
    second = await handler(object(), Toolkit())

    assert first.value.headers["x-test"] == 0
    assert second.value.headers["x-test"] == 1
    assert first.value is not second.value


@pytest.mark.anyio
async def test_escape_through_reply_handle():
    def respond(reply, done):
        done(None, reply(reply.h.redirect("/redirect")))

    outcome = await auto_inject({"respond": respond})(object(), Toolkit())

    assert isinstance(outcome, EscapedResponse)
    assert outcome.response.location == "/redirect"


@pytest.mark.parametrize("backend", ("asyncio", "trio"))
def test_call_outside_event_loop(backend):
    handler = auto_inject(
        {"first": lambda: 1, "reply": lambda first: first + 1}, async_backend=backend
    )

    assert handler() == Value(2)
