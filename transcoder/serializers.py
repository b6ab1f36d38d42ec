import json
from dataclasses import dataclass

from rest_framework import serializers

from .errors import MalformedJob
from .utils import DESCRIPTOR_RESERVED, source_key


@dataclass(frozen=True)
class JobMessage:
    lesson_id: str
    original_file_path: str

    def to_payload(self) -> dict:
        return {"lessonId": self.lesson_id, "originalFilePath": self.original_file_path}


class JobMessageSerializer(serializers.Serializer):
    lessonId = serializers.CharField(max_length=64, trim_whitespace=True)
    originalFilePath = serializers.CharField(max_length=1024, trim_whitespace=True)

    def validate_originalFilePath(self, value):
        name = source_key(value)
        if value.endswith(("/", "\\")) or not name:
            raise serializers.ValidationError("Path has no file name.")
        if any(c in name for c in DESCRIPTOR_RESERVED):
            raise serializers.ValidationError(
                f"File name may not contain any of {' '.join(DESCRIPTOR_RESERVED)}."
            )
        return value

    def to_job(self) -> JobMessage:
        data = self.validated_data
        return JobMessage(lesson_id=data["lessonId"], original_file_path=data["originalFilePath"])


def _lesson_id_hint(payload) -> str | None:
    """Best-effort lesson id from a payload that failed validation."""
    if not isinstance(payload, dict):
        return None
    raw = payload.get("lessonId")
    if isinstance(raw, (str, int)) and not isinstance(raw, bool):
        hint = str(raw).strip()
        return hint or None
    return None


def parse_job_message(body) -> JobMessage:
    """
    Decode and validate a raw queue body. Raises MalformedJob; the error's
    lesson_id is set when the body still names a lesson.
    """
    if isinstance(body, (bytes, bytearray)):
        try:
            body = body.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedJob("message body is not UTF-8") from e
    if isinstance(body, str):
        try:
            payload = json.loads(body)
        except json.JSONDecodeError as e:
            raise MalformedJob("message body is not JSON", detail=str(e)) from e
    else:
        payload = body

    if not isinstance(payload, dict):
        raise MalformedJob("message body is not a JSON object")

    ser = JobMessageSerializer(data=payload)
    if not ser.is_valid():
        raise MalformedJob("invalid job message", lesson_id=_lesson_id_hint(payload),
                           detail=json.dumps(ser.errors, default=str))
    return ser.to_job()
