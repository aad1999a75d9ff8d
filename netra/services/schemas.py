"""
Pydantic schemas for the JSON the vision model is asked to return.
"""

from pydantic import BaseModel


class DetectedObjectPayload(BaseModel):
    """One element of the detect-entities array."""

    name: str
    shortDetails: str = ""
    ymin: float
    xmin: float
    ymax: float
    xmax: float


class IdentifyPayload(BaseModel):
    """Answer to identify-entity."""

    objectName: str
    details: str
    spokenDescription: str
    safetyWarning: str | None = None
    expiryDate: str | None = None
