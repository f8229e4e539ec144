import unittest

from pydantic import ValidationError

from voice_intake.config.constants import (
    INPUT_MIME_TYPE,
    MESSAGE_TYPE_AUDIO,
    MESSAGE_TYPE_START,
    MESSAGE_TYPE_STOP,
    MESSAGE_TYPE_TEXT,
    MESSAGE_TYPE_TOOL_RESPONSE,
)
from voice_intake.models.message_schemas import (
    INCOMING_MODELS,
    AudioMessage,
    ErrorMessage,
    SickNoteMessage,
    StartMessage,
    TextMessage,
    ToolCallMessage,
    ToolResponseMessage,
    TranscriptionMessage,
)
from voice_intake.models.records import StructuredRecord


class TestMessageSchemas(unittest.TestCase):
    def test_incoming_models_cover_client_messages(self):
        self.assertEqual(
            set(INCOMING_MODELS),
            {MESSAGE_TYPE_START, MESSAGE_TYPE_AUDIO, MESSAGE_TYPE_TEXT,
             MESSAGE_TYPE_TOOL_RESPONSE, MESSAGE_TYPE_STOP},
        )

    def test_start_message_with_optional_config(self):
        message = StartMessage(type="start")
        self.assertIsNone(message.config)

        message = StartMessage(**{"type": "start", "config": {"organizationName": "Springfield"}})
        self.assertEqual(message.config.organizationName, "Springfield")
        self.assertIsNone(message.config.agentName)

    def test_start_message_rejects_other_types(self):
        with self.assertRaises(ValidationError):
            StartMessage(type="stop")

    def test_audio_message_defaults_to_input_mime_type(self):
        message = AudioMessage(type="audio", data="AAA=")
        self.assertEqual(message.mimeType, INPUT_MIME_TYPE)

        with self.assertRaises(ValidationError):
            AudioMessage(type="audio")

    def test_text_message_validation(self):
        self.assertEqual(TextMessage(type="text", text="Hello").text, "Hello")
        with self.assertRaises(ValidationError):
            TextMessage(type="text", text="   ")

    def test_tool_response_requires_id_and_name(self):
        message = ToolResponseMessage(type="toolResponse", id="c1", name="lookup")
        self.assertEqual(message.response, {})
        with self.assertRaises(ValidationError):
            ToolResponseMessage(type="toolResponse", name="lookup")

    def test_outgoing_messages_serialize_with_type(self):
        self.assertEqual(
            ErrorMessage(message="Engine unavailable").model_dump(),
            {"type": "error", "message": "Engine unavailable"},
        )
        self.assertEqual(
            TranscriptionMessage(text="Hi", isUser=True).model_dump(),
            {"type": "transcription", "text": "Hi", "isUser": True},
        )
        self.assertEqual(
            ToolCallMessage(id="c1", name="submitRecord").model_dump(),
            {"type": "toolCall", "id": "c1", "name": "submitRecord", "args": {}},
        )

    def test_sick_note_message_carries_record(self):
        record = StructuredRecord(
            organizationId="school-1",
            locationName="Springfield",
            organizationName="Lincoln School",
            subjectName="Max Mustermann",
            subjectBirthDate="12.05.2015",
            effectiveUntil="Friday",
        )
        dumped = SickNoteMessage(data=record).model_dump()
        self.assertEqual(dumped["type"], "sickNote")
        self.assertEqual(dumped["data"]["status"], "collected")
        self.assertEqual(dumped["data"]["id"], record.id)


if __name__ == "__main__":
    unittest.main()
