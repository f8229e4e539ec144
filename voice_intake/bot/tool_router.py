"""
Routing of engine tool calls to directory validation and record persistence.

The router owns the `submitRecord` tool. For every call it produces exactly one
ToolResponse: a rejection when fields are missing or the location/organization
pair is not in the directory, a success once the record has been saved, and a
rejection with a storage message when persistence fails, so the engine is never
left waiting. Repeating a call id reuses the first result instead of saving the
record twice.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional

from voice_intake.config.constants import (
    FIELD_EFFECTIVE_UNTIL,
    FIELD_LOCATION,
    FIELD_ORGANIZATION,
    FIELD_SUBJECT_BIRTH_DATE,
    FIELD_SUBJECT_NAME,
    LOGGER_NAME,
    RECORD_FIELDS,
    SUBMIT_TOOL_NAME,
)
from voice_intake.errors import PersistenceFault
from voice_intake.models.records import StructuredRecord, ToolCall, ToolResponse
from voice_intake.services.directory_store import DirectoryStore, RecordStore
from voice_intake.services.matcher import find_matching_entry

logger = logging.getLogger(LOGGER_NAME)

MESSAGE_SAVED = "The sick note was saved successfully. Confirm this to the caller."
MESSAGE_NOT_FOUND = (
    "Location and organization were not found in the directory, ask again. "
    "Ask the caller to repeat the city and the school."
)
MESSAGE_MISSING_FIELDS = "Missing fields: {fields}. Ask the caller for them."
MESSAGE_STORAGE_FAILED = (
    "The sick note could not be saved because storage is unavailable. "
    "Apologize to the caller and ask them to try again later."
)

RecordListener = Callable[[StructuredRecord], Awaitable[None]]


class ToolCallRouter:
    """Validates and persists records submitted through engine tool calls."""

    def __init__(self, directory: DirectoryStore, records: RecordStore,
                 on_record: Optional[RecordListener] = None,
                 tool_name: str = SUBMIT_TOOL_NAME):
        self.directory = directory
        self.records = records
        self.tool_name = tool_name
        self._on_record = on_record
        self._calls: Dict[str, asyncio.Task] = {}

    def owns(self, call: ToolCall) -> bool:
        """Whether this router answers the given tool call."""
        return call.name == self.tool_name

    async def handle(self, call: ToolCall) -> Optional[ToolResponse]:
        """
        Answer a tool call.

        Args:
            call: Tool call emitted by the engine

        Returns:
            The ToolResponse for the call, or None when the tool is not owned by
            this router
        """
        if not self.owns(call):
            return None

        previous = self._calls.get(call.id)
        if previous is not None:
            if not previous.done():
                logger.info(f"Tool call {call.id} already in progress, awaiting first result")
                return await asyncio.shield(previous)
            if not previous.cancelled():
                # One answer per call id, whether it succeeded or was rejected
                logger.info(f"Tool call {call.id} already answered, reusing the first result")
                return previous.result()

        # Shielded so a cancelled session never leaves a half-written record behind
        task = asyncio.ensure_future(self._submit(call))
        self._calls[call.id] = task
        return await asyncio.shield(task)

    async def _submit(self, call: ToolCall) -> ToolResponse:
        try:
            return await self._submit_record(call)
        except Exception as e:
            logger.error(f"Unexpected error handling tool call {call.id}: {e}", exc_info=True)
            return ToolResponse.rejected(call, MESSAGE_STORAGE_FAILED)

    async def _submit_record(self, call: ToolCall) -> ToolResponse:
        missing = [name for name in RECORD_FIELDS if not call.argument(name)]
        if missing:
            logger.info(f"Tool call {call.id} rejected, missing fields: {missing}")
            return ToolResponse.rejected(
                call, MESSAGE_MISSING_FIELDS.format(fields=", ".join(missing))
            )

        location = call.argument(FIELD_LOCATION)
        organization = call.argument(FIELD_ORGANIZATION)
        entries = await self.directory.list_entries()
        match = find_matching_entry(entries, location, organization)
        if match is None:
            logger.info(
                f"Tool call {call.id} rejected, no directory match for "
                f"{organization!r} in {location!r}"
            )
            return ToolResponse.rejected(call, MESSAGE_NOT_FOUND)

        record = StructuredRecord(
            organizationId=match.id,
            locationName=location,
            organizationName=organization,
            subjectName=call.argument(FIELD_SUBJECT_NAME),
            subjectBirthDate=call.argument(FIELD_SUBJECT_BIRTH_DATE),
            effectiveUntil=call.argument(FIELD_EFFECTIVE_UNTIL),
        )
        try:
            await self.records.save(record)
        except PersistenceFault as e:
            logger.error(f"Failed to persist record for tool call {call.id}: {e}")
            return ToolResponse.rejected(call, MESSAGE_STORAGE_FAILED)

        if self._on_record:
            try:
                await self._on_record(record)
            except Exception as e:
                logger.warning(f"Record listener failed for {record.id}: {e}")

        logger.info(f"Tool call {call.id} saved record {record.id} for organization {match.id}")
        return ToolResponse.success(call, MESSAGE_SAVED)
