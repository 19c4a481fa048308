from __future__ import annotations


class InputValidationError(ValueError):
    """Request is missing required fields or exceeds size limits."""


class GenerationError(RuntimeError):
    def __init__(self, message: str, *, code: str = "generation_failed"):
        super().__init__(message)
        self.code = code


class MalformedOutputError(GenerationError):
    def __init__(self, message: str, *, code: str = "malformed_output"):
        super().__init__(message, code=code)


class RunNotFoundError(LookupError):
    def __init__(self, run_id: str):
        super().__init__(f"Optimization run '{run_id}' not found.")
        self.run_id = run_id


class StreamClosedError(RuntimeError):
    pass
