"""
Job-fatal errors raised by the pipeline stages.

Every error carries the stage it came from so the orchestrator can log
"lesson X failed at <stage>" without inspecting exception types.
"""


class PipelineError(Exception):
    stage = "pipeline"

    def __init__(self, message: str, *, lesson_id: str | None = None, detail: str = ""):
        super().__init__(message)
        self.lesson_id = lesson_id
        self.detail = detail

    def __str__(self):
        msg = super().__str__()
        if self.detail:
            return f"{msg}: {self.detail}"
        return msg


class MalformedJob(PipelineError):
    stage = "parse"


class SourceUnavailable(PipelineError):
    stage = "fetch"


class EncodingFailed(PipelineError):
    stage = "encode"

    def __init__(self, message: str, *, tier: str, lesson_id: str | None = None, detail: str = ""):
        super().__init__(message, lesson_id=lesson_id, detail=detail)
        self.tier = tier


class PackagingFailed(PipelineError):
    stage = "package"


class PublishFailed(PipelineError):
    stage = "publish"


class UnknownLesson(PipelineError):
    stage = "status"
