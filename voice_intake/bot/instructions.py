"""
Instruction payload and tool declaration sent to the streaming engine at connect.
"""

from typing import Any, Dict, Iterable, Optional

from voice_intake.config.constants import (
    BEGIN_SPEAKING_PROMPT,
    FIELD_EFFECTIVE_UNTIL,
    FIELD_LOCATION,
    FIELD_ORGANIZATION,
    FIELD_SUBJECT_BIRTH_DATE,
    FIELD_SUBJECT_NAME,
    RECORD_FIELDS,
    SUBMIT_TOOL_NAME,
)
from voice_intake.models.message_schemas import StartConfig
from voice_intake.models.records import DirectoryEntry

EMPTY_DIRECTORY_LINE = "- (no organizations registered)"

FIELD_DESCRIPTIONS = {
    FIELD_LOCATION: "The city where the school is located.",
    FIELD_ORGANIZATION: "The name of the child's school.",
    FIELD_SUBJECT_NAME: "The child's full first and last name.",
    FIELD_SUBJECT_BIRTH_DATE: "The child's date of birth (e.g. 12.05.2015).",
    FIELD_EFFECTIVE_UNTIL: "The date until which the child is expected to be absent.",
}


def submit_record_tool() -> Dict[str, Any]:
    """Function declaration for the record submission tool (JSON schema parameters)."""
    return {
        "name": SUBMIT_TOOL_NAME,
        "description": (
            "Stores a child's sick note once all required details "
            "(city, school, name, date of birth, absence end date) are collected."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                name: {"type": "string", "description": FIELD_DESCRIPTIONS[name]}
                for name in RECORD_FIELDS
            },
            "required": list(RECORD_FIELDS),
        },
    }


def directory_listing(entries: Iterable[DirectoryEntry]) -> str:
    lines = [f"- {entry.organizationName} ({entry.locationName})" for entry in entries]
    return "\n".join(lines) if lines else EMPTY_DIRECTORY_LINE


def build_instructions(entries: Iterable[DirectoryEntry],
                       config: Optional[StartConfig] = None) -> str:
    """
    Build the agent's system instructions.

    Args:
        entries: Directory snapshot taken when the call starts
        config: Optional caller-side settings from the `start` message
    """
    agent_name = (config.agentName if config and config.agentName else None) or "the AI office"
    answering_for = ""
    if config and config.organizationName:
        answering_for = f" You answer the phone for {config.organizationName}."

    return f"""You are an efficient AI office assistant that takes sick notes for school children.{answering_for}

Scenario: The phone rings and you pick up.

RULE 1: YOU START THE CONVERSATION.
As soon as you receive the message "{BEGIN_SPEAKING_PROMPT}" (your start signal), speak immediately.
Greeting: "Good day, this is {agent_name}. If you want to report your child sick, please tell me the city and the school."

LANGUAGE:
- If the caller speaks another language, switch to that language immediately.

GOAL:
Collect the following details for a sick note:
1. City.
2. School.
3. Full name of the child.
4. Date of birth of the child.
5. How long the child will be absent (until when).

VERIFICATION:
You MUST check the city and school names against this list and confirm them exactly.
If the city or school is not on the list, say so politely and ask for city and school again.

DIRECTORY:
{directory_listing(entries)}

As soon as you have all 5 details, call the function '{SUBMIT_TOOL_NAME}'.
If the function reports that the school was not found, ask for city and school again.
After a successful save, briefly confirm it to the caller and end the conversation.
"""
