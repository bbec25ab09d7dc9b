import json

import pytest

from nokode.core.resolver import NO_RESPONSE_TEXT
from nokode.models.base import ModelCallError
from tests.fakes import FakeProvider, LoopingProvider, call, respond, turn


@pytest.mark.asyncio
async def test_get_with_empty_memory_and_datastore_always_answers(client_for):
    async with client_for() as client:
        res = await client.get("/some/arbitrary/path")
    assert res.status_code == 200
    assert res.text == NO_RESPONSE_TEXT
    assert res.headers["content-type"].startswith("text/html")


@pytest.mark.asyncio
async def test_web_response_is_returned_verbatim(client_for):
    provider = FakeProvider([turn(respond('{"ok": true}', status=201, content_type="application/json"))])
    async with client_for(provider) as client:
        res = await client.post("/api/things", json={"name": "thing"})
    assert res.status_code == 201
    assert res.headers["content-type"] == "application/json"
    assert res.json() == {"ok": True}


@pytest.mark.asyncio
async def test_every_method_reaches_the_agent(client_for):
    async with client_for() as client:
        for method in ("GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"):
            res = await client.request(method, "/x")
            assert res.status_code == 200
        assert len(client.fake_provider.states) == 6


@pytest.mark.asyncio
async def test_request_details_reach_the_prompt(client_for, tmp_path):
    (tmp_path / "prompt.md").write_text(
        "{{METHOD}} {{URL}} {{QUERY}} {{BODY}} {{IP}}\n{{MEMORY}}", encoding="utf-8"
    )
    (tmp_path / "memory.md").write_text("Always be polite.", encoding="utf-8")
    async with client_for() as client:
        await client.post("/api/users?page=2&tag=a&tag=b", json={"name": "Ada"})
        instructions = client.fake_provider.states[0].instructions

    assert instructions.startswith('POST /api/users?page=2&tag=a&tag=b {"page": "2", "tag": ["a", "b"]} {"name": "Ada"}')
    assert "Always be polite." in instructions
    assert "## DATABASE SCHEMA" in instructions


@pytest.mark.asyncio
async def test_form_bodies_are_parsed(client_for, tmp_path):
    (tmp_path / "prompt.md").write_text("{{BODY}}", encoding="utf-8")
    async with client_for() as client:
        await client.post("/submit", data={"email": "a@b.c", "name": "Ada"})
        instructions = client.fake_provider.states[0].instructions
    assert json.loads(instructions) == {"email": "a@b.c", "name": "Ada"}


@pytest.mark.asyncio
async def test_model_failure_renders_error_page(client_for):
    provider = FakeProvider([ModelCallError("provider exploded <b>")])
    async with client_for(provider) as client:
        res = await client.get("/")
    assert res.status_code == 500
    assert "Server Error" in res.text
    assert "Request ID:" in res.text
    assert "provider exploded &lt;b&gt;" in res.text


@pytest.mark.asyncio
async def test_step_budget_holds_end_to_end(client_for):
    provider = LoopingProvider()
    async with client_for(provider, max_steps=4) as client:
        res = await client.get("/loop")
    assert len(provider.states) == 4
    assert res.status_code == 200
    assert res.json()["rows"] == [{"one": 1}]


@pytest.mark.asyncio
async def test_memory_written_in_one_request_is_seen_by_the_next(client_for, tmp_path):
    (tmp_path / "prompt.md").write_text("memory: {{MEMORY}}", encoding="utf-8")
    provider = FakeProvider(
        [
            turn(call("updateMemory", content="Use dark mode.", mode="append")),
            turn(text="noted"),
            turn(text="second request"),
        ]
    )
    async with client_for(provider) as client:
        first = await client.post("/feedback", json={"text": "dark mode please"})
        second = await client.get("/")
    # the tool call outranks the free text
    assert first.json() == {"success": True, "message": "Memory appended successfully"}
    assert second.text == "second request"
    assert "Use dark mode." in provider.states[2].instructions


@pytest.mark.asyncio
async def test_schema_snapshot_is_taken_at_startup(client_for, tmp_path):
    provider = FakeProvider(
        [
            turn(call("database", query="CREATE TABLE contacts (id INTEGER PRIMARY KEY, name TEXT)", mode="exec")),
            turn(call("database", query="INSERT INTO contacts (name) VALUES (?)", params=["Ada"])),
            turn(respond("created", status=201)),
            turn(text=""),
            turn(text="hello"),
        ]
    )
    async with client_for(provider) as client:
        created = await client.post("/api/contacts", json={"name": "Ada"})
        await client.get("/api/contacts")
    assert created.status_code == 201
    later_prompt = provider.states[4].instructions
    # table created mid-process: counted in the live summary but absent from the cached schema
    assert "`contacts`: 1 row(s)" in later_prompt
    assert "CREATE TABLE contacts" not in later_prompt


@pytest.mark.asyncio
async def test_provider_is_closed_on_shutdown(client_for):
    async with client_for() as client:
        provider = client.fake_provider
        await client.get("/")
    assert provider.closed is True


@pytest.mark.asyncio
async def test_non_standard_methods_reach_the_agent(client_for, tmp_path):
    (tmp_path / "prompt.md").write_text("{{METHOD}} {{PATH}}", encoding="utf-8")
    provider = FakeProvider(
        [
            turn(respond("purged", content_type="text/plain")),
            turn(text=""),
            turn(respond("found", content_type="text/plain")),
            turn(text=""),
        ]
    )
    async with client_for(provider) as client:
        purge = await client.request("PURGE", "/cache")
        propfind = await client.request("PROPFIND", "/dav/file")
    assert purge.status_code == 200
    assert purge.text == "purged"
    assert propfind.text == "found"
    assert provider.states[0].instructions == "PURGE /cache"
    assert provider.states[2].instructions == "PROPFIND /dav/file"


@pytest.mark.asyncio
async def test_undecodable_memory_file_does_not_break_requests(client_for, tmp_path):
    (tmp_path / "prompt.md").write_text("memory: {{MEMORY}}", encoding="utf-8")
    (tmp_path / "memory.md").write_bytes(b"caf\xe9 notes")
    async with client_for(FakeProvider([turn(text="hello")])) as client:
        res = await client.get("/")
        instructions = client.fake_provider.states[0].instructions
    assert res.status_code == 200
    assert res.text == "hello"
    assert "caf\ufffd notes" in instructions


@pytest.mark.asyncio
async def test_undecodable_prompt_file_uses_default_template(client_for, tmp_path):
    (tmp_path / "prompt.md").write_bytes(b"\xff\xfe{{METHOD}}")
    async with client_for(FakeProvider([turn(text="hello")])) as client:
        res = await client.get("/here")
        instructions = client.fake_provider.states[0].instructions
    assert res.status_code == 200
    assert instructions.startswith("You are a web server.")
    assert "Path: /here" in instructions


@pytest.mark.asyncio
async def test_unsendable_header_is_reported_back_to_the_model(client_for):
    provider = FakeProvider([turn(respond("ok", content_type="text/plain; name=☃"))])
    async with client_for(provider) as client:
        res = await client.get("/")
    # the rejected declaration never reaches the wire; the failure result is served instead
    assert res.status_code == 200
    assert res.json()["success"] is False
    assert res.json()["errorType"] == "validation"
    assert "latin-1" in provider.states[1].steps[0].invocations[0].result["error"]
