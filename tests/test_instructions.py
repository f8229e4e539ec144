import unittest

from voice_intake.bot.engines.gemini_live import gemini_schema
from voice_intake.bot.instructions import (
    EMPTY_DIRECTORY_LINE,
    build_instructions,
    directory_listing,
    submit_record_tool,
)
from voice_intake.config.constants import BEGIN_SPEAKING_PROMPT, RECORD_FIELDS
from voice_intake.models.message_schemas import StartConfig
from voice_intake.models.records import DirectoryEntry

ENTRY = DirectoryEntry(id="1", organizationName="Lincoln School", locationName="Springfield",
                       contactEmail="office@lincoln.example")


class TestInstructions(unittest.TestCase):
    def test_directory_listing(self):
        self.assertEqual(directory_listing([ENTRY]), "- Lincoln School (Springfield)")
        self.assertEqual(directory_listing([]), EMPTY_DIRECTORY_LINE)

    def test_build_instructions_lists_directory_and_start_signal(self):
        text = build_instructions([ENTRY])
        self.assertIn("- Lincoln School (Springfield)", text)
        self.assertIn(BEGIN_SPEAKING_PROMPT, text)
        self.assertIn("submitRecord", text)
        self.assertIn("the AI office", text)

    def test_build_instructions_uses_caller_config(self):
        config = StartConfig(organizationName="Springfield Schools", agentName="Anna")
        text = build_instructions([ENTRY], config)
        self.assertIn("this is Anna", text)
        self.assertIn("Springfield Schools", text)

    def test_submit_tool_requires_every_record_field(self):
        tool = submit_record_tool()
        self.assertEqual(tool["name"], "submitRecord")
        self.assertEqual(tool["parameters"]["required"], list(RECORD_FIELDS))
        for field_name in RECORD_FIELDS:
            self.assertEqual(tool["parameters"]["properties"][field_name]["type"], "string")

    def test_gemini_schema_uses_upper_case_types(self):
        schema = gemini_schema(submit_record_tool()["parameters"])
        self.assertEqual(schema["type"], "OBJECT")
        self.assertEqual(schema["properties"]["subjectName"]["type"], "STRING")
        self.assertEqual(schema["required"], list(RECORD_FIELDS))


if __name__ == "__main__":
    unittest.main()
