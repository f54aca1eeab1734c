"""Error taxonomy shared by the store, the API and the realtime channel."""


class CampusSiteError(Exception):
    """Base error; ``status_code`` is the HTTP status it maps to."""

    status_code = 500


class ValidationError(CampusSiteError):
    """A required field or file is missing, or an upload is rejected."""

    status_code = 400


class NotFoundError(CampusSiteError):
    """No record exists for the requested identifier."""

    status_code = 404

    def __init__(self, collection: str, record_id: str) -> None:
        super().__init__(f"{collection} record {record_id} not found")
        self.collection = collection
        self.record_id = record_id


class StoreError(CampusSiteError):
    """The persistence backend failed."""


class ChannelError(CampusSiteError):
    """A broadcast could not be delivered; logged, never returned to callers."""
