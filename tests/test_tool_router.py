import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from voice_intake.bot.tool_router import (
    MESSAGE_NOT_FOUND,
    MESSAGE_SAVED,
    MESSAGE_STORAGE_FAILED,
    ToolCallRouter,
)
from voice_intake.errors import PersistenceFault
from voice_intake.models.records import ToolCall

ARGS = {
    "locationName": "Springfield",
    "organizationName": "LINCOLN school",
    "subjectName": "Bart Simpson",
    "subjectBirthDate": "01.04.2014",
    "effectiveUntil": "Wednesday",
}


def make_call(call_id="call-1", name="submitRecord", **overrides):
    return ToolCall(id=call_id, name=name, arguments={**ARGS, **overrides})


@pytest.fixture
def on_record():
    return AsyncMock()


@pytest.fixture
def router(directory, records, on_record):
    return ToolCallRouter(directory, records, on_record=on_record)


@pytest.mark.asyncio
async def test_unowned_tool_is_left_to_the_client(router, records):
    assert await router.handle(make_call(name="lookupWeather")) is None
    assert await records.list_records() == []


@pytest.mark.asyncio
async def test_match_saves_record_and_succeeds(router, records, on_record):
    response = await router.handle(make_call())

    assert response.result == "success"
    assert response.message == MESSAGE_SAVED
    saved = await records.list_records()
    assert len(saved) == 1
    assert saved[0].organizationId == "school-1"
    assert saved[0].status == "collected"
    assert saved[0].savedAt
    on_record.assert_awaited_once_with(saved[0])


@pytest.mark.asyncio
async def test_no_match_is_rejected_without_saving(router, records, on_record):
    response = await router.handle(make_call(locationName="Capital City"))

    assert response.result == "rejected"
    assert response.message == MESSAGE_NOT_FOUND
    assert await records.list_records() == []
    on_record.assert_not_awaited()


@pytest.mark.asyncio
async def test_missing_fields_are_listed(router, records):
    response = await router.handle(make_call(subjectName="  ", effectiveUntil=None))

    assert response.result == "rejected"
    assert "subjectName" in response.message
    assert "effectiveUntil" in response.message
    assert await records.list_records() == []


@pytest.mark.asyncio
async def test_directory_is_reread_on_every_call(router, directory, records):
    assert (await router.handle(make_call())).succeeded
    await directory.delete("school-1")

    response = await router.handle(make_call(call_id="call-2"))

    assert response.result == "rejected"
    assert len(await records.list_records()) == 1


@pytest.mark.asyncio
async def test_repeated_id_never_double_persists(router, records):
    first, second = await asyncio.gather(router.handle(make_call()), router.handle(make_call()))
    third = await router.handle(make_call())

    assert first == second == third
    assert len(await records.list_records()) == 1


@pytest.mark.asyncio
async def test_rejected_id_keeps_its_first_answer(router, records, on_record):
    first = await router.handle(make_call(locationName="Nowhere"))
    repeated = await router.handle(make_call())

    assert first.result == "rejected"
    assert repeated == first
    assert await records.list_records() == []
    on_record.assert_not_awaited()


@pytest.mark.asyncio
async def test_new_id_after_rejection_is_saved(router, records):
    assert not (await router.handle(make_call(locationName="Nowhere"))).succeeded
    assert (await router.handle(make_call(call_id="call-2"))).succeeded
    assert len(await records.list_records()) == 1


@pytest.mark.asyncio
async def test_persistence_failure_still_answers(router, records, on_record):
    with patch.object(records, "save", AsyncMock(side_effect=PersistenceFault("disk full"))):
        response = await router.handle(make_call())

    assert response.result == "rejected"
    assert response.message == MESSAGE_STORAGE_FAILED
    on_record.assert_not_awaited()


@pytest.mark.asyncio
async def test_unexpected_error_still_answers(router, directory):
    with patch.object(directory, "list_entries", AsyncMock(side_effect=RuntimeError("boom"))):
        response = await router.handle(make_call())

    assert response.id == "call-1"
    assert response.result == "rejected"


@pytest.mark.asyncio
async def test_listener_failure_does_not_fail_the_call(directory, records):
    router = ToolCallRouter(directory, records, on_record=AsyncMock(side_effect=RuntimeError("gone")))

    response = await router.handle(make_call())

    assert response.succeeded
    assert len(await records.list_records()) == 1
