"""Workspace controller tests: drafting flow, guards and resets."""

from __future__ import annotations

from typing import Any

import anyio
import httpx
import pytest

from conftest import BackendStub, make_gateway
from content_engine.gateway.base import ApiStatus
from content_engine.models.workspace_config import OutputType, Scenario, WorkspaceConfig
from content_engine.workspace.controller import Workspace
from content_engine.workspace.notifications import Level

pytestmark = pytest.mark.anyio


def _errors(ws: Workspace) -> list[str]:
    return [n.message for n in ws.notifications.pending() if n.level is Level.ERROR]


async def _press_release_workspace(ws: Workspace) -> None:
    await ws.update_config(selected_types=[OutputType.PRESS_RELEASE])
    await ws.add_upload("q3.txt", b"Q3 revenue grew 10%")


async def test_generate_scenario_single_press_release(backend: BackendStub, workspace: Workspace) -> None:
    backend.reply(
        "generate",
        json_body={"outputs": [{"outputType": "press_release", "text": "Release body", "score": 82}]},
    )
    await _press_release_workspace(workspace)

    created = await workspace.generate()

    assert created is not None and len(created) == 1
    (version,) = workspace.versions.versions
    assert version.version_number == 1
    assert version.text == "Release body"
    assert version.score == 82
    assert version.output_type is OutputType.PRESS_RELEASE
    assert workspace.versions.selected_id == version.id
    assert workspace.draft_text == "Release body"
    (payload,) = backend.calls("generate")
    assert payload["text"] == "Q3 revenue grew 10%"
    assert payload["selectedTypes"] == ["press_release"]


async def test_generate_backend_500_appends_nothing(backend: BackendStub, workspace: Workspace) -> None:
    backend.reply("generate", status=500, text="internal error")
    await _press_release_workspace(workspace)

    assert await workspace.generate() is None

    assert len(workspace.versions) == 0
    assert workspace.is_generating is False
    assert _errors(workspace) == ["Backend error 500: internal error"]


async def test_generate_long_error_body_is_bounded(backend: BackendStub, workspace: Workspace) -> None:
    backend.reply("generate", status=503, text="boom " * 500)
    await _press_release_workspace(workspace)

    await workspace.generate()

    (message,) = _errors(workspace)
    assert len(message) <= len("Backend error 503: ") + 200


async def test_generate_plain_text_response(backend: BackendStub, workspace: Workspace) -> None:
    backend.reply("generate", text="Hello world")
    await _press_release_workspace(workspace)

    (version,) = await workspace.generate()

    assert version.text == "Hello world"
    assert version.output_type is OutputType.PRESS_RELEASE
    assert version.score is None


async def test_generate_transport_failure_is_reported(backend: BackendStub, workspace: Workspace) -> None:
    backend.fail("generate", httpx.ConnectError("connection refused"))
    await _press_release_workspace(workspace)

    assert await workspace.generate() is None

    assert workspace.is_generating is False
    assert len(_errors(workspace)) == 1


async def test_generate_batch_numbers_follow_existing(backend: BackendStub, workspace: Workspace) -> None:
    backend.reply("generate", json_body={"output": "first"})
    await workspace.add_upload("a.txt", b"facts")
    await workspace.generate()
    await workspace.generate()
    workspace_ids = [v.id for v in workspace.versions.versions]
    await workspace.delete_version(workspace_ids[-1])

    await workspace.update_config(
        selected_types=[OutputType.PRESS_RELEASE, OutputType.LINKEDIN_POST, OutputType.DETAILED_NOTE]
    )
    backend.reply(
        "generate",
        json_body={
            "outputs": [
                {"outputType": "press_release", "text": "PR"},
                {"outputType": "linkedin_post", "text": "LI"},
                {"text": "Note"},
            ]
        },
    )
    batch = await workspace.generate()

    assert [v.version_number for v in batch] == [3, 4, 5]
    assert len({v.created_at for v in batch}) == 1
    assert [v.output_type for v in batch] == [
        OutputType.PRESS_RELEASE,
        OutputType.LINKEDIN_POST,
        OutputType.DETAILED_NOTE,
    ]
    assert workspace.versions.selected_id == batch[0].id


async def test_generate_requires_source_text(backend: BackendStub, workspace: Workspace) -> None:
    assert await workspace.generate() is None

    assert backend.requests == []
    assert len(_errors(workspace)) == 1


async def test_generate_uses_manual_text_alone(backend: BackendStub, workspace: Workspace) -> None:
    backend.reply("generate", json_body={"output": "Draft"})
    await workspace.set_manual_text("  Pasted facts  ")

    await workspace.generate()

    assert backend.calls("generate")[0]["text"] == "Pasted facts"


async def test_generate_requires_base_url(backend: BackendStub, workspace: Workspace) -> None:
    workspace.set_api_base_url("   ")
    await workspace.set_manual_text("facts")

    assert await workspace.generate() is None

    assert backend.requests == []
    assert "API base URL" in _errors(workspace)[0]


async def test_generate_is_ignored_while_busy() -> None:
    release = anyio.Event()
    calls = 0

    async def slow_backend(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        await release.wait()
        return httpx.Response(200, json={"output": "Draft"})

    ws = Workspace(backend=make_gateway(slow_backend))
    await ws.set_manual_text("facts")

    async with anyio.create_task_group() as tg:
        tg.start_soon(ws.generate)
        while calls == 0:
            await anyio.sleep(0)
        assert ws.is_generating

        assert await ws.generate() is None
        assert await ws.rewrite("shorter") is None
        assert calls == 1

        release.set()

    assert calls == 1
    assert len(ws.versions) == 1
    assert ws.is_generating is False


async def test_generate_is_ignored_while_rewriting() -> None:
    release = anyio.Event()
    stub = BackendStub()
    stub.reply("generate", json_body={"output": "Draft"})
    stub.reply("rewrite", json_body={"output": "Shorter draft"})

    async def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/rewrite"):
            stub.requests.append(request)
            await release.wait()
            return httpx.Response(200, json={"output": "Shorter draft"})
        return stub(request)

    ws = Workspace(backend=make_gateway(handler))
    await ws.set_manual_text("facts")
    await ws.generate()

    async with anyio.create_task_group() as tg:
        tg.start_soon(ws.rewrite, "shorter")
        while not stub.calls("rewrite"):
            await anyio.sleep(0)
        assert ws.is_rewriting

        assert await ws.generate() is None
        assert len(stub.calls("generate")) == 1

        release.set()

    assert len(stub.calls("generate")) == 1
    assert [v.version_number for v in ws.versions.versions] == [1, 2]
    assert ws.is_rewriting is False
    assert ws.is_rewriting is False


async def test_rewrite_appends_one_version_and_clears_instructions(
    backend: BackendStub, workspace: Workspace
) -> None:
    backend.reply("generate", json_body={"outputs": [{"outputType": "press_release", "text": "Original"}]})
    backend.reply("rewrite", json_body={"outputs": [{"outputType": "press_release", "text": "Shorter", "score": 90}]})
    await _press_release_workspace(workspace)
    await workspace.generate()
    await workspace.set_draft_text("Original, hand edited")
    await workspace.set_rewrite_instructions("Make it shorter")

    version = await workspace.rewrite()

    assert version is not None
    assert version.version_number == 2
    assert version.comment == "Rewrite: Make it shorter"
    assert workspace.versions.selected_id == version.id
    assert workspace.draft_text == "Shorter"
    assert workspace.rewrite_instructions == ""
    (payload,) = backend.calls("rewrite")
    assert payload["previousContent"] == "Original, hand edited"
    assert payload["notes"] == "Make it shorter"
    assert payload["outputType"] == "press_release"
    assert payload["mode"] == "rewrite"


async def test_rewrite_falls_back_to_selected_text(backend: BackendStub, workspace: Workspace) -> None:
    backend.reply("generate", json_body={"output": "Stored draft"})
    backend.reply("rewrite", json_body={"result": "Revised"})
    await workspace.set_manual_text("facts")
    await workspace.generate()
    await workspace.set_draft_text("")

    version = await workspace.rewrite()

    assert version.version_number == 2
    assert backend.calls("rewrite")[0]["previousContent"] == "Stored draft"


async def test_rewrite_inherits_output_type_of_selected(backend: BackendStub, workspace: Workspace) -> None:
    backend.reply(
        "generate",
        json_body={"outputs": [{"outputType": "press_release", "text": "PR"}, {"outputType": "linkedin_post", "text": "LI"}]},
    )
    backend.reply("rewrite", json_body={"output": "LI v2"})
    await workspace.update_config(selected_types=[OutputType.PRESS_RELEASE, OutputType.LINKEDIN_POST])
    await workspace.set_manual_text("facts")
    _, linkedin = await workspace.generate()
    await workspace.select_version(linkedin.id)

    version = await workspace.rewrite()

    assert version.output_type is OutputType.LINKEDIN_POST
    assert version.version_number == 3


async def test_rewrite_without_draft_is_rejected(backend: BackendStub, workspace: Workspace) -> None:
    assert await workspace.rewrite("anything") is None

    assert backend.requests == []
    assert len(_errors(workspace)) == 1


async def test_failed_rewrite_keeps_instructions(backend: BackendStub, workspace: Workspace) -> None:
    backend.reply("generate", json_body={"output": "Draft"})
    backend.reply("rewrite", status=500, text="nope")
    await workspace.set_manual_text("facts")
    await workspace.generate()

    assert await workspace.rewrite("Add a risk section") is None

    assert workspace.rewrite_instructions == "Add a risk section"
    assert len(workspace.versions) == 1
    assert workspace.is_rewriting is False


async def test_select_version_discards_scratch_edits(backend: BackendStub, workspace: Workspace) -> None:
    backend.reply("generate", json_body={"outputs": [{"text": "One"}, {"text": "Two"}]})
    await workspace.update_config(selected_types=[OutputType.PRESS_RELEASE, OutputType.LINKEDIN_POST])
    await workspace.set_manual_text("facts")
    first, second = await workspace.generate()
    await workspace.set_draft_text("scratch edits")

    await workspace.select_version(second.id)
    assert workspace.draft_text == "Two"

    await workspace.set_draft_text("more edits")
    await workspace.select_version(first.id)
    assert workspace.draft_text == "One"
    assert first.text == "One"


async def test_select_unknown_version_reports(workspace: Workspace) -> None:
    assert await workspace.select_version("missing") is None
    assert len(_errors(workspace)) == 1


async def test_delete_selected_version_falls_back(backend: BackendStub, workspace: Workspace) -> None:
    backend.reply("generate", json_body={"outputs": [{"text": "A"}, {"text": "B"}, {"text": "C"}]})
    await workspace.update_config(selected_types=list(OutputType)[:3])
    await workspace.set_manual_text("facts")
    a, b, c = await workspace.generate()
    await workspace.select_version(b.id)

    await workspace.delete_version(b.id)
    assert workspace.versions.selected_id == c.id
    assert workspace.draft_text == "C"

    await workspace.delete_version(c.id)
    await workspace.delete_version(a.id)
    assert workspace.versions.selected_id is None
    assert workspace.draft_text == ""


async def test_version_sources_are_snapshots(backend: BackendStub, workspace: Workspace) -> None:
    backend.reply("generate", json_body={"output": "Draft"})
    await workspace.add_upload("a.txt", b"alpha")
    await workspace.add_upload("b.txt", b"bravo")
    (version,) = await workspace.generate()

    await workspace.remove_source(0)

    assert [s.name for s in version.sources] == ["a.txt", "b.txt"]
    assert [s.name for s in workspace.sources.sources] == ["b.txt"]


async def test_add_url_with_empty_text_reports_and_adds_nothing(
    backend: BackendStub, workspace: Workspace
) -> None:
    backend.reply("fetch-url", json_body={"text": "   "})

    assert await workspace.add_url("https://example.com/blank") is None

    assert len(workspace.sources) == 0
    assert len(_errors(workspace)) == 1


async def test_add_url_invalid_makes_no_call(backend: BackendStub, workspace: Workspace) -> None:
    assert await workspace.add_url("example dot com") is None

    assert backend.requests == []
    assert "Invalid URL" in _errors(workspace)[0]


async def test_reset_restores_defaults(backend: BackendStub, workspace: Workspace) -> None:
    backend.reply("generate", json_body={"output": "Draft"})
    await workspace.update_config(title="Q3", scenario=Scenario.RESULTS, temperature=0.9, max_words=150)
    await workspace.set_manual_text("pasted")
    await workspace.add_upload("a.txt", b"alpha")
    await workspace.generate()
    await workspace.set_rewrite_instructions("tighter")

    assert await workspace.reset_workspace() is True

    assert workspace.sources.sources == ()
    assert workspace.sources.manual_text == ""
    assert workspace.versions.versions == ()
    assert workspace.versions.selected_id is None
    assert workspace.draft_text == ""
    assert workspace.rewrite_instructions == ""
    assert workspace.config == WorkspaceConfig()

    await workspace.set_manual_text("new facts")
    (fresh,) = await workspace.generate()
    assert fresh.version_number == 1


async def test_toggle_last_output_type_is_noop(workspace: Workspace) -> None:
    assert workspace.config.selected_types == [OutputType.INVESTOR_COMMENTARY]

    assert await workspace.toggle_output_type(OutputType.INVESTOR_COMMENTARY) is False
    assert workspace.config.selected_types == [OutputType.INVESTOR_COMMENTARY]

    assert await workspace.toggle_output_type(OutputType.PRESS_RELEASE) is True
    assert await workspace.toggle_output_type(OutputType.INVESTOR_COMMENTARY) is True
    assert workspace.config.selected_types == [OutputType.PRESS_RELEASE]


async def test_invalid_config_update_changes_nothing(workspace: Workspace) -> None:
    assert await workspace.update_config(title="New", temperature=1.5) is None

    assert workspace.config.title == ""
    assert workspace.config.temperature == 0.3
    assert "temperature" in _errors(workspace)[0]


async def test_empty_selection_is_rejected(workspace: Workspace) -> None:
    assert await workspace.update_config(selected_types=[]) is None
    assert workspace.config.selected_types == [OutputType.INVESTOR_COMMENTARY]


async def test_analysis_is_cached_until_selection_changes(backend: BackendStub, workspace: Workspace) -> None:
    backend.reply("generate", json_body={"outputs": [{"text": "One"}, {"text": "Two"}]})
    backend.reply(
        "analyse-statements",
        json_body={"statements": [{"text": "One", "reliability": 0.7}], "summary": {"totalStatements": 1}},
    )
    await workspace.update_config(selected_types=[OutputType.PRESS_RELEASE, OutputType.LINKEDIN_POST])
    await workspace.set_manual_text("facts")
    _, second = await workspace.generate()

    first_result = await workspace.analyse_statements()
    again = await workspace.analyse_statements()
    assert again is first_result
    assert len(backend.calls("analyse-statements")) == 1

    await workspace.select_version(second.id)
    assert workspace.analysis is None
    await workspace.analyse_statements()
    assert [c["text"] for c in backend.calls("analyse-statements")] == ["One", "Two"]


async def test_save_draft_as_version(backend: BackendStub, workspace: Workspace) -> None:
    backend.reply("generate", json_body={"outputs": [{"outputType": "press_release", "text": "Draft", "score": 60}]})
    await _press_release_workspace(workspace)
    (original,) = await workspace.generate()

    assert await workspace.save_draft_as_version() is None
    await workspace.set_draft_text("Draft with a fix")
    saved = await workspace.save_draft_as_version()

    assert saved.version_number == 2
    assert saved.text == "Draft with a fix"
    assert saved.comment == "Manual edit"
    assert saved.score is None
    assert saved.output_type is OutputType.PRESS_RELEASE
    assert original.text == "Draft"


async def test_check_health_updates_status(backend: BackendStub, workspace: Workspace) -> None:
    assert workspace.api_status is ApiStatus.UNKNOWN

    assert await workspace.check_health() is ApiStatus.OK

    backend.fail("health", httpx.ConnectError("down"))
    assert await workspace.check_health() is ApiStatus.ERROR
    assert workspace.api_status is ApiStatus.ERROR


async def test_listeners_receive_events(backend: BackendStub, workspace: Workspace) -> None:
    backend.reply("generate", json_body={"output": "Draft"})
    events: list[dict[str, Any]] = []

    async def listener(event: dict[str, Any]) -> None:
        events.append(event)

    await workspace.set_manual_text("facts")
    workspace.subscribe(listener)
    await workspace.generate()

    kinds = [e["type"] for e in events]
    assert kinds[0] == "status"
    assert "notification" in kinds
    assert kinds[-1] == "workspace"
    assert events[-1]["workspace"]["versions"][0]["text"] == "Draft"


async def test_edits_emit_workspace_events(workspace: Workspace) -> None:
    events: list[dict[str, Any]] = []

    async def listener(event: dict[str, Any]) -> None:
        events.append(event)

    workspace.subscribe(listener)
    await workspace.set_manual_text("facts")
    await workspace.set_draft_text("scratch")
    await workspace.set_rewrite_instructions("tighter")
    await workspace.toggle_output_type(OutputType.PRESS_RELEASE)
    await workspace.toggle_output_type(OutputType.INVESTOR_COMMENTARY)
    await workspace.toggle_output_type(OutputType.PRESS_RELEASE)

    assert [e["type"] for e in events] == ["workspace"] * 5
    last = events[-1]["workspace"]
    assert last["manualText"] == "facts"
    assert last["draftText"] == "scratch"
    assert last["rewriteInstructions"] == "tighter"
    assert last["config"]["selectedTypes"] == ["press_release"]


async def test_snapshot_config_uses_camel_case(workspace: Workspace) -> None:
    config = workspace.snapshot()["config"]

    assert config["selectedTypes"] == ["investor_commentary"]
    assert config["maxTokens"] == 2048
    assert config["versionType"] == "complete"
    assert "selected_types" not in config


async def test_add_files_reports_after_every_read_finishes(
    tmp_path, monkeypatch: pytest.MonkeyPatch, workspace: Workspace
) -> None:
    slow = tmp_path / "slow.txt"
    slow.write_text("late document", encoding="utf-8")
    read_file = workspace.sources.add_file

    async def delayed(path):
        if path == slow:
            await anyio.sleep(0.05)
        return await read_file(path)

    monkeypatch.setattr(workspace.sources, "add_file", delayed)
    events: list[dict[str, Any]] = []

    async def listener(event: dict[str, Any]) -> None:
        events.append(event)

    workspace.subscribe(listener)

    assert await workspace.add_files([tmp_path / "missing.txt", slow]) is None

    assert len(workspace.sources) == 1
    assert len(_errors(workspace)) == 1
    assert [e["type"] for e in events] == ["notification", "workspace"]
    assert [s["name"] for s in events[-1]["workspace"]["sources"]] == ["slow.txt"]


async def test_diagnostics_reports_missing_backend(workspace: Workspace) -> None:
    assert "OK: No versions yet (fresh session)." in workspace.diagnostics()

    workspace.set_api_base_url("")

    assert "WARN: No API base URL configured." in workspace.diagnostics()
