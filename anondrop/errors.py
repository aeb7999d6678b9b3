class LifecycleError(Exception):
    """Base class for errors raised by the object lifecycle."""


class IntentValidationError(LifecycleError, ValueError):
    pass


class RecordNotFound(LifecycleError, LookupError):
    def __init__(self, object_id: str):
        super().__init__(f"object {object_id} not found")
        self.object_id = object_id


class DependencyUnavailable(LifecycleError):
    """A metadata or object store is misconfigured or unreachable."""


class MalformedRecordError(LifecycleError):
    def __init__(self, object_id: str, reason: str):
        super().__init__(f"malformed record {object_id}: {reason}")
        self.object_id = object_id
        self.reason = reason
