from pydantic import BaseModel


class ParsedField(BaseModel):
    """A field value read out of a document before it is stored."""
    name: str
    value: str
    confidence: float = 0.0

    def with_changes(self, **changes) -> "ParsedField":
        return self.model_copy(update=changes)
